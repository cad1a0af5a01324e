"""
Modelos de vídeo e componentes do pipeline.
"""

from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from enum import Enum


class TextChunk(BaseModel):
    """Representa um chunk de texto para TTS/legenda."""
    model_config = ConfigDict(frozen=True)

    index: int
    text: str

    @property
    def char_count(self) -> int:
        return len(self.text)


class VideoSegment(BaseModel):
    """Segmento de texto dimensionado para a duração de um clipe."""
    index: int
    text: str
    estimated_duration: float
    visual_prompt: str = ""


class AudioChunk(BaseModel):
    """Representa um chunk de áudio gerado."""
    index: int
    path: str
    text: str
    duration_seconds: Optional[float] = None


class SubtitleCue(BaseModel):
    """Uma entrada do arquivo SRT."""
    index: int
    start: float
    end: float
    text: str


class MediaStage(str, Enum):
    RAW_CHUNK = "raw_chunk"
    MERGED = "merged"
    FINAL = "final"


class MediaAsset(BaseModel):
    """Arquivo no diretório temporário do job, marcado pela etapa que o gerou."""
    model_config = ConfigDict(frozen=True)

    path: str
    stage: MediaStage


class StockVideoFile(BaseModel):
    """Uma variante de arquivo de um vídeo de banco de imagens."""
    link: str
    width: int = 0
    height: int = 0
    quality: str = ""
    file_type: str = ""


class StockCandidate(BaseModel):
    """Vídeo de banco de imagens com o melhor arquivo já escolhido."""
    video_id: int
    duration: float
    link: str
    width: int
    height: int
    score: int

    @property
    def resolution(self) -> int:
        return self.width * self.height


class TextStats(BaseModel):
    """Estatísticas do processamento de texto."""
    total_chars: int
    total_words: int
    audio_chunks: int
    video_segments: int
    estimated_duration: float
    avg_segment_duration: float


class StockSelection(BaseModel):
    """Resultado da seleção de clipes (antes do download)."""
    candidates: List[StockCandidate]
    total_duration: float
