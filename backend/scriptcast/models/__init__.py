"""
Models package for the video generator.
"""

from .config import (
    ApiConfig,
    ProcessingConfig,
    FFmpegConfig,
    RetryPolicy,
    PollPolicy,
    ConcurrencyConfig,
    StockConfig,
    StorageConfig,
    FullConfig,
    load_config,
)
from .video import (
    TextChunk,
    VideoSegment,
    AudioChunk,
    SubtitleCue,
    MediaStage,
    MediaAsset,
    StockCandidate,
    StockVideoFile,
    StockSelection,
    TextStats,
)
from .job import (
    Job,
    JobStatusEnum,
    VideoSource,
    JobCreate,
    JobResponse,
    JobStatusResponse,
)

__all__ = [
    # Config
    "ApiConfig",
    "ProcessingConfig",
    "FFmpegConfig",
    "RetryPolicy",
    "PollPolicy",
    "ConcurrencyConfig",
    "StockConfig",
    "StorageConfig",
    "FullConfig",
    "load_config",
    # Video
    "TextChunk",
    "VideoSegment",
    "AudioChunk",
    "SubtitleCue",
    "MediaStage",
    "MediaAsset",
    "StockCandidate",
    "StockVideoFile",
    "StockSelection",
    "TextStats",
    # Job
    "Job",
    "JobStatusEnum",
    "VideoSource",
    "JobCreate",
    "JobResponse",
    "JobStatusResponse",
]
