"""
Modelos de jobs e status.
"""

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from enum import Enum

from .video import MediaAsset


class JobStatusEnum(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class VideoSource(str, Enum):
    GENERATED = "generated"
    STOCK = "stock"


class Job(BaseModel):
    """Estado de um job em memória (não persistido)."""
    job_id: str
    status: JobStatusEnum = JobStatusEnum.PROCESSING
    progress: int = 0
    current_step: str = "Initializing"
    video_path: Optional[str] = None
    subtitle_path: Optional[str] = None
    assets: List[MediaAsset] = []
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_terminal(self) -> bool:
        return self.status != JobStatusEnum.PROCESSING


class JobCreate(BaseModel):
    """Dados para criação de um job."""
    script: str
    voice: str = "banmai"
    speaking_speed: float = 1.0
    video_style: str = "cinematic"
    video_source: VideoSource = VideoSource.GENERATED
    stock_keywords: Optional[str] = None
    with_subtitles: bool = False

    @field_validator("video_source", mode="before")
    @classmethod
    def _accept_ai_alias(cls, value):
        # O frontend antigo envia "ai" para vídeo gerado
        if value == "ai":
            return VideoSource.GENERATED
        return value

    @field_validator("speaking_speed", mode="before")
    @classmethod
    def _default_speed(cls, value):
        if value in (None, 0):
            return 1.0
        return value


class JobResponse(BaseModel):
    """Resposta após criação de job."""
    job_id: str
    status: JobStatusEnum


class JobStatusResponse(BaseModel):
    """Status atual do job, como visto pelo cliente."""
    status: JobStatusEnum
    progress: int
    current_step: str
    video_url: Optional[str] = None
    subtitle_url: Optional[str] = None
    error: Optional[str] = None
