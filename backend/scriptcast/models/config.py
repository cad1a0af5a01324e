"""
Modelos de configuração do sistema.
"""

import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

CONFIG_FILE = Path("storage/config.json")


# ============== API CONFIGS ==============


class ApiConfig(BaseModel):
    tts_api_keys: List[str] = []
    video_api_keys: List[str] = []
    pexels_api_key: str = ""
    tts_base_url: str = "https://api.fpt.ai/hmi/tts/v5"
    video_base_url: str = "https://api.pika.art/v1"
    pexels_base_url: str = "https://api.pexels.com/videos"


# ============== PROCESSING ==============


class ProcessingConfig(BaseModel):
    max_text_length: int = Field(default=50000, gt=0)
    audio_chunk_size: int = Field(default=4500, gt=0)
    subtitle_chunk_size: int = Field(default=100, gt=0)
    video_segment_duration: float = Field(default=5.5, gt=0)
    words_per_minute: float = Field(default=150.0, gt=0)
    generate_subtitles: bool = True


# ============== FFMPEG CONFIGS ==============


class FFmpegConfig(BaseModel):
    resolution: str = "1920x1080"
    fps: int = 30
    audio_sample_rate: int = 44100
    audio_bitrate: str = "192k"
    video_bitrate: str = "5M"
    preset: str = "medium"
    crf: int = Field(default=18, ge=0, le=51)
    audio_crossfade_duration: float = Field(default=0.3, ge=0)
    transition_duration: float = Field(default=0.5, ge=0)
    threads: int = 2
    timeout_seconds: int = 900

    @property
    def width(self) -> int:
        return int(self.resolution.split("x")[0])

    @property
    def height(self) -> int:
        return int(self.resolution.split("x")[1])


# ============== RETRY / POLLING ==============


class RetryPolicy(BaseModel):
    """Política de retry por unidade (tentativas, backoff e cooldown da chave)."""
    max_attempts: int = Field(default=3, ge=1)
    backoff_start: float = Field(default=1.0, ge=0)
    backoff_increment: float = Field(default=1.0, ge=0)
    backoff_max: float = Field(default=30.0, ge=0)
    cooldown_seconds: float = Field(default=60.0, ge=0)


class PollPolicy(BaseModel):
    """Política de polling para provedores assíncronos."""
    interval_seconds: float = Field(default=5.0, ge=0)
    max_attempts: int = Field(default=10, ge=1)
    initial_delay_seconds: float = Field(default=2.0, ge=0)


class ConcurrencyConfig(BaseModel):
    max_concurrent_tts: int = Field(default=3, ge=1)
    max_concurrent_video: int = Field(default=2, ge=1)
    tts_min_request_interval: float = Field(default=0.5, ge=0)
    tts_retry: RetryPolicy = Field(default_factory=RetryPolicy)
    video_retry: RetryPolicy = Field(default_factory=lambda: RetryPolicy(
        backoff_start=2.0, backoff_increment=2.0, cooldown_seconds=120.0
    ))
    tts_poll: PollPolicy = Field(default_factory=PollPolicy)
    video_poll: PollPolicy = Field(default_factory=lambda: PollPolicy(
        interval_seconds=10.0, max_attempts=60, initial_delay_seconds=0.0
    ))


# ============== STOCK ==============


class StockConfig(BaseModel):
    min_clip_duration: float = 5.0
    max_clip_duration: float = 15.0
    max_clips: int = Field(default=10, ge=1)
    selection_buffer: float = Field(default=2.0, ge=0)
    safety_margin: float = Field(default=2.0, ge=0)
    max_segments: int = Field(default=50, ge=1)
    transition_duration: float = Field(default=1.0, ge=0)
    per_page: int = Field(default=80, ge=1, le=80)
    default_keywords: str = "nature technology abstract"


# ============== STORAGE ==============


class StorageConfig(BaseModel):
    temp_dir: str = "storage/temp"
    static_dir: str = "static"
    intro_filename: str = "intro_video.mp4"
    outro_filename: str = "outro_video.mp4"
    retention_seconds: float = 3600.0

    @property
    def intro_path(self) -> Path:
        return Path(self.static_dir) / self.intro_filename

    @property
    def outro_path(self) -> Path:
        return Path(self.static_dir) / self.outro_filename


# ============== FULL CONFIG ==============


class FullConfig(BaseModel):
    api: ApiConfig = Field(default_factory=ApiConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    ffmpeg: FFmpegConfig = Field(default_factory=FFmpegConfig)
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    stock: StockConfig = Field(default_factory=StockConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def parse_api_keys(raw: str) -> List[str]:
    """Converte "k1, k2,,k3" em ["k1", "k2", "k3"]."""
    return [key.strip() for key in raw.split(",") if key.strip()]


def load_config(config_file: Optional[Path] = None) -> FullConfig:
    """
    Carrega configuração do arquivo JSON e aplica overrides de ambiente.

    Chaves de API vêm preferencialmente do ambiente (.env) para não ficarem
    salvas em disco junto do resto da configuração.
    """
    load_dotenv()
    config_file = config_file or CONFIG_FILE

    data = {}
    if config_file.exists():
        with open(config_file) as f:
            data = json.load(f)
        logger.info(f"Loaded config from {config_file}")

    config = FullConfig(**data)

    tts_keys = os.getenv("TTS_API_KEYS")
    if tts_keys:
        config.api.tts_api_keys = parse_api_keys(tts_keys)
    video_keys = os.getenv("VIDEO_API_KEYS")
    if video_keys:
        config.api.video_api_keys = parse_api_keys(video_keys)
    pexels_key = os.getenv("PEXELS_API_KEY")
    if pexels_key:
        config.api.pexels_api_key = pexels_key
    temp_dir = os.getenv("TEMP_DIR")
    if temp_dir:
        config.storage.temp_dir = temp_dir

    logger.info(
        f"Config: TTS keys={len(config.api.tts_api_keys)}, "
        f"video keys={len(config.api.video_api_keys)}, "
        f"chunk size={config.processing.audio_chunk_size}"
    )
    return config
