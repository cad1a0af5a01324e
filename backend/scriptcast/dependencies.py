"""
Serviços compartilhados pela aplicação, montados uma vez no startup.
"""

from dataclasses import dataclass

from fastapi import Request

from .models.config import FullConfig
from .services.api_key_pool import APIKeyPool
from .services.audio_generator import SpeechGenerator
from .services.job_orchestrator import JobOrchestrator
from .services.job_registry import JobRegistry
from .services.media_composer import MediaComposer
from .services.stock_video import StockClipSelector
from .services.text_processor import TextProcessor
from .services.video_generator import ClipGenerator
from .utils.file_manager import FileManager


@dataclass
class PipelineContext:
    config: FullConfig
    registry: JobRegistry
    file_manager: FileManager
    text_processor: TextProcessor
    tts_keys: APIKeyPool
    video_keys: APIKeyPool
    composer: MediaComposer
    speech_generator: SpeechGenerator
    clip_generator: ClipGenerator
    stock_selector: StockClipSelector
    orchestrator: JobOrchestrator

    async def close(self) -> None:
        await self.registry.shutdown()
        await self.speech_generator.close()
        await self.clip_generator.close()
        await self.stock_selector.close()


def build_context(config: FullConfig) -> PipelineContext:
    """Cria os pools de chaves, os serviços e o orquestrador."""
    registry = JobRegistry()
    file_manager = FileManager(temp_dir=config.storage.temp_dir)
    text_processor = TextProcessor(
        audio_chunk_size=config.processing.audio_chunk_size,
        video_segment_duration=config.processing.video_segment_duration,
        words_per_minute=config.processing.words_per_minute,
        max_subtitle_length=config.processing.subtitle_chunk_size
    )
    tts_keys = APIKeyPool(config.api.tts_api_keys, name="tts")
    video_keys = APIKeyPool(config.api.video_api_keys, name="video")
    composer = MediaComposer(config.ffmpeg)

    speech_generator = SpeechGenerator(config.api, tts_keys, config.concurrency)
    clip_generator = ClipGenerator(config.api, video_keys, config.concurrency, composer)
    stock_selector = StockClipSelector(config.api, config.stock, config.ffmpeg, composer)

    orchestrator = JobOrchestrator(
        config=config,
        registry=registry,
        file_manager=file_manager,
        text_processor=text_processor,
        speech_generator=speech_generator,
        clip_generator=clip_generator,
        stock_selector=stock_selector,
        composer=composer
    )

    return PipelineContext(
        config=config,
        registry=registry,
        file_manager=file_manager,
        text_processor=text_processor,
        tts_keys=tts_keys,
        video_keys=video_keys,
        composer=composer,
        speech_generator=speech_generator,
        clip_generator=clip_generator,
        stock_selector=stock_selector,
        orchestrator=orchestrator
    )


def get_context(request: Request) -> PipelineContext:
    """Dependency FastAPI: contexto guardado em app.state no lifespan."""
    return request.app.state.context
