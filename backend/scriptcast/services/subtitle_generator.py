"""
Legendas SRT a partir das durações reais dos chunks de áudio.
"""

import logging
from pathlib import Path
from typing import List, Sequence

from ..models.video import AudioChunk, SubtitleCue

logger = logging.getLogger(__name__)


def format_srt_timestamp(seconds: float) -> str:
    """12.5 -> "00:00:12,500" """
    total_ms = int(round(max(seconds, 0.0) * 1000))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def build_cues(
    chunks: Sequence[AudioChunk],
    crossfade: float,
    offset: float = 0.0
) -> List[SubtitleCue]:
    """
    Uma legenda por chunk de áudio.

    O início de cada chunk após o primeiro recua `crossfade` segundos, que é
    o quanto ele se sobrepõe ao anterior no merge.

    Args:
        chunks: Chunks com duration_seconds medido
        crossfade: Duração do crossfade do merge de áudio
        offset: Início da narração no vídeo final (duração da intro)
    """
    cues = []
    current = offset
    for i, chunk in enumerate(chunks):
        if chunk.duration_seconds is None:
            raise ValueError(f"Audio chunk {chunk.index} has no measured duration")
        if i > 0:
            current -= crossfade
        start = current
        current += chunk.duration_seconds
        cues.append(SubtitleCue(index=i + 1, start=start, end=current, text=chunk.text))
    return cues


def render_srt(cues: Sequence[SubtitleCue]) -> str:
    blocks = [
        f"{cue.index}\n"
        f"{format_srt_timestamp(cue.start)} --> {format_srt_timestamp(cue.end)}\n"
        f"{cue.text}\n"
        for cue in cues
    ]
    return "\n".join(blocks)


def write_srt(cues: Sequence[SubtitleCue], output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_srt(cues), encoding="utf-8")
    logger.info(f"Wrote {len(cues)} subtitle cues to {output_path.name}")
    return output_path
