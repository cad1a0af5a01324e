"""
Services package for scriptcast.
"""

from .errors import (
    PipelineError,
    KeyPoolExhaustedError,
    ProviderError,
    PollTimeoutError,
    GenerationError,
    EncoderError,
    StockVideoError,
    StageError,
)
from .text_processor import TextProcessor
from .api_key_pool import APIKeyPool
from .worker_pool import GenerationWorkerPool, poll_for_result
from .audio_generator import SpeechGenerator
from .video_generator import ClipGenerator
from .prompt_builder import build_visual_prompt
from .media_composer import MediaComposer
from .stock_video import StockClipSelector
from .subtitle_generator import build_cues, write_srt
from .job_registry import JobRegistry
from .job_orchestrator import JobOrchestrator

__all__ = [
    "PipelineError",
    "KeyPoolExhaustedError",
    "ProviderError",
    "PollTimeoutError",
    "GenerationError",
    "EncoderError",
    "StockVideoError",
    "StageError",
    "TextProcessor",
    "APIKeyPool",
    "GenerationWorkerPool",
    "poll_for_result",
    "SpeechGenerator",
    "ClipGenerator",
    "build_visual_prompt",
    "MediaComposer",
    "StockClipSelector",
    "build_cues",
    "write_srt",
    "JobRegistry",
    "JobOrchestrator",
]
