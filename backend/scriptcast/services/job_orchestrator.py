"""
Orquestrador do pipeline de geração de vídeo.
"""

import asyncio
import logging
from typing import List, Optional

from .text_processor import TextProcessor
from .audio_generator import SpeechGenerator
from .video_generator import ClipGenerator
from .stock_video import StockClipSelector
from .media_composer import MediaComposer
from .job_registry import JobRegistry
from .subtitle_generator import build_cues, write_srt
from .errors import StageError

from ..models.config import FullConfig
from ..models.job import JobCreate, VideoSource
from ..models.video import AudioChunk, MediaStage, TextChunk
from ..utils.file_manager import FileManager, JobWorkspace
from ..utils.logger import get_job_logger

logger = logging.getLogger(__name__)

# Progresso fixo por etapa (apenas exibição)
PROGRESS_WORKSPACE = 5
PROGRESS_TEXT = 10
PROGRESS_AUDIO = 20
PROGRESS_SUBTITLES = 30
PROGRESS_MERGE_AUDIO = 40
PROGRESS_VIDEO_SOURCE = 45
PROGRESS_GENERATE_CLIPS = 50
PROGRESS_MERGE_VIDEO = 55
PROGRESS_COMPOSE = 80
PROGRESS_INTRO_OUTRO = 90
PROGRESS_FINALIZE = 95


class JobOrchestrator:
    """
    Orquestra todo o pipeline de geração de vídeo.

    Features:
    - Execução sequencial das etapas, na ordem fixa
    - Progresso por checkpoints fixos
    - Qualquer falha de etapa encerra o job como "failed" (sem retry de etapa)
    - Legendas são opcionais: falha nelas só gera warning
    - O job sempre termina em estado terminal
    - Cada arquivo produzido é registrado no job com a etapa que o gerou
    """

    def __init__(
        self,
        config: FullConfig,
        registry: JobRegistry,
        file_manager: FileManager,
        text_processor: TextProcessor,
        speech_generator: SpeechGenerator,
        clip_generator: ClipGenerator,
        stock_selector: StockClipSelector,
        composer: MediaComposer
    ):
        self.config = config
        self.registry = registry
        self.file_manager = file_manager
        self.text_processor = text_processor
        self.speech_generator = speech_generator
        self.clip_generator = clip_generator
        self.stock_selector = stock_selector
        self.composer = composer

    async def run(self, job_id: str, request: JobCreate) -> None:
        """
        Executa o pipeline completo de um job.

        Não levanta exceção: o resultado fica no registro (completed/failed).
        """
        log = get_job_logger(__name__, job_id)
        stage = "workspace setup"

        try:
            # 1. Diretórios do job
            self._update_status(job_id, PROGRESS_WORKSPACE, "Preparing workspace")
            workspace = self.file_manager.create_workspace(job_id)

            # 2. Texto
            stage = "text processing"
            self._update_status(job_id, PROGRESS_TEXT, "Processing text")
            chunks = self._split_audio_chunks(request)
            if not chunks:
                raise ValueError("script produced no text chunks")
            log.info(f"Script split into {len(chunks)} audio chunks")

            # 3. Áudio
            stage = "audio generation"
            self._update_status(job_id, PROGRESS_AUDIO, f"Generating audio ({len(chunks)} chunks)")
            audio_chunks = await self.speech_generator.generate_all(
                chunks, request.voice, request.speaking_speed, workspace.audio
            )
            for chunk in audio_chunks:
                self.registry.record_asset(job_id, chunk.path, MediaStage.RAW_CHUNK)

            # 4. Legendas (não fatal)
            subtitle_path = None
            if self._wants_subtitles(request):
                self._update_status(job_id, PROGRESS_SUBTITLES, "Generating subtitles")
                subtitle_path = await self._generate_subtitles(audio_chunks, workspace, log)

            # 5. Merge de áudio
            stage = "audio merge"
            self._update_status(job_id, PROGRESS_MERGE_AUDIO, "Merging audio")
            merged_audio = await asyncio.to_thread(
                self.composer.merge_audio_crossfade,
                [c.path for c in audio_chunks],
                str(workspace.output / "narration.mp3"),
                self.config.ffmpeg.audio_crossfade_duration
            )
            self.registry.record_asset(job_id, merged_audio, MediaStage.MERGED)
            audio_duration = await asyncio.to_thread(self.composer.get_duration, merged_audio)
            log.info(f"Narration duration: {audio_duration:.2f}s")

            # 6. Trilha de vídeo
            if request.video_source == VideoSource.STOCK:
                stage = "stock video"
                self._update_status(job_id, PROGRESS_VIDEO_SOURCE, "Searching stock videos")
                keywords = request.stock_keywords or self.config.stock.default_keywords
                video_track = await self.stock_selector.prepare(keywords, audio_duration, workspace.stock)
                self.registry.record_asset(job_id, video_track, MediaStage.MERGED)
            else:
                stage = "video generation"
                video_track = await self._generate_video_track(job_id, request, workspace, audio_duration, log)

            # 7. Mux
            stage = "video composition"
            self._update_status(job_id, PROGRESS_COMPOSE, "Composing final video")
            composed = await asyncio.to_thread(
                self.composer.compose_final,
                video_track,
                merged_audio,
                str(workspace.output / "composed.mp4")
            )

            # 8. Intro/outro
            stage = "intro/outro"
            final_path = await self._add_intro_outro(job_id, composed, workspace, log)
            if final_path != composed:
                self.registry.record_asset(job_id, composed, MediaStage.MERGED)

            # 9. Concluir
            self._update_status(job_id, PROGRESS_FINALIZE, "Finalizing")
            self.registry.mark_completed(job_id, final_path, subtitle_path)
            log.info(f"Video ready: {final_path}")

        except asyncio.CancelledError:
            self.registry.mark_failed(job_id, "job cancelled")
            raise
        except Exception as e:
            error = e if isinstance(e, StageError) else StageError(stage, e)
            log.error(f"Pipeline failed: {error}", exc_info=True)
            self.registry.mark_failed(job_id, str(error))

    def _update_status(self, job_id: str, progress: int, step: str) -> None:
        """Atualiza progresso do job."""
        self.registry.update_progress(job_id, progress, step)

    def _wants_subtitles(self, request: JobCreate) -> bool:
        return request.with_subtitles and self.config.processing.generate_subtitles

    def _split_audio_chunks(self, request: JobCreate) -> List[TextChunk]:
        # Com legendas, cada linha de legenda vira um arquivo de áudio
        if self._wants_subtitles(request):
            return self.text_processor.split_for_subtitles(request.script)
        return self.text_processor.split_for_audio(request.script)

    async def _generate_subtitles(
        self,
        audio_chunks: List[AudioChunk],
        workspace: JobWorkspace,
        log
    ) -> Optional[str]:
        """Gera o SRT; qualquer erro é apenas registrado."""
        try:
            measured = []
            for chunk in audio_chunks:
                duration = await asyncio.to_thread(self.composer.get_duration, chunk.path)
                measured.append(chunk.model_copy(update={"duration_seconds": duration}))

            offset = 0.0
            intro = self.config.storage.intro_path
            if intro.exists():
                offset = await asyncio.to_thread(self.composer.get_duration, str(intro))

            cues = build_cues(measured, self.config.ffmpeg.audio_crossfade_duration, offset)
            path = write_srt(cues, workspace.output / "subtitles.srt")
            return str(path)
        except Exception as e:
            log.warning(f"Subtitle generation failed (continuing without subtitles): {e}")
            return None

    async def _generate_video_track(
        self,
        job_id: str,
        request: JobCreate,
        workspace: JobWorkspace,
        audio_duration: float,
        log
    ) -> str:
        self._update_status(job_id, PROGRESS_VIDEO_SOURCE, "Segmenting script for video")
        segments = self.text_processor.split_for_video(request.script)
        segments = self.clip_generator.build_prompts(segments, request.video_style)
        log.info(f"Script split into {len(segments)} video segments")

        self._update_status(job_id, PROGRESS_GENERATE_CLIPS, f"Generating {len(segments)} video clips")
        clips = await self.clip_generator.generate_all(
            segments, workspace.video, self.config.ffmpeg.resolution
        )
        for clip in clips:
            self.registry.record_asset(job_id, clip, MediaStage.RAW_CHUNK)

        self._update_status(job_id, PROGRESS_MERGE_VIDEO, "Merging video clips")
        merged = await asyncio.to_thread(
            self.composer.merge_video_transition,
            clips,
            str(workspace.video / "merged_video.mp4"),
            self.config.ffmpeg.transition_duration
        )
        self.registry.record_asset(job_id, merged, MediaStage.MERGED)

        # O mux corta no stream mais curto: o vídeo precisa cobrir toda a narração
        video_duration = await asyncio.to_thread(self.composer.get_duration, merged)
        if video_duration < audio_duration:
            log.info(f"Video track shorter than narration ({video_duration:.2f}s < {audio_duration:.2f}s), extending")
            merged = await asyncio.to_thread(
                self.composer.extend_freeze_last_frame,
                merged,
                str(workspace.video / "merged_video_extended.mp4"),
                audio_duration
            )
            self.registry.record_asset(job_id, merged, MediaStage.MERGED)
        return merged

    async def _add_intro_outro(
        self,
        job_id: str,
        composed: str,
        workspace: JobWorkspace,
        log
    ) -> str:
        storage = self.config.storage
        parts: List[str] = []
        if storage.intro_path.exists():
            parts.append(str(storage.intro_path))
        parts.append(composed)
        if storage.outro_path.exists():
            parts.append(str(storage.outro_path))

        if len(parts) == 1:
            return composed

        self._update_status(job_id, PROGRESS_INTRO_OUTRO, "Adding intro/outro")
        log.info(f"Concatenating {len(parts) - 1} bumper clip(s)")
        return await asyncio.to_thread(
            self.composer.concat_videos, parts, str(workspace.output / "final.mp4")
        )
