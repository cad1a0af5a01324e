"""
Serviço de geração de clipes de vídeo a partir de prompts.
"""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

import httpx

from ..models.config import ApiConfig, ConcurrencyConfig
from ..models.video import VideoSegment
from .api_key_pool import APIKeyPool
from .errors import ProviderError
from .media_composer import MediaComposer
from .prompt_builder import PromptBuilder, build_visual_prompt
from .worker_pool import GenerationWorkerPool, poll_for_result

logger = logging.getLogger(__name__)


class ClipGenerator:
    """
    Gera um clipe por segmento de vídeo.

    Features:
    - Um prompt por segmento (função plugável)
    - Submissão + polling do job no provedor
    - Rotação de chaves com cooldown longo (chamadas caras)
    - Cada clipe é ajustado para a duração estimada do seu segmento
    """

    def __init__(
        self,
        api_config: ApiConfig,
        key_pool: APIKeyPool,
        concurrency: ConcurrencyConfig,
        composer: MediaComposer,
        prompt_builder: PromptBuilder = build_visual_prompt,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.base_url = api_config.video_base_url.rstrip("/")
        self.key_pool = key_pool
        self.concurrency = concurrency
        self.composer = composer
        self.prompt_builder = prompt_builder
        self._client = client
        self._sleep = sleep

    async def _get_client(self) -> httpx.AsyncClient:
        """Retorna cliente HTTP reutilizável."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(connect=30, read=600, write=30, pool=60)
            )
        return self._client

    async def close(self):
        """Fecha o cliente HTTP."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def build_prompts(self, segments: List[VideoSegment], style: str) -> List[VideoSegment]:
        """Preenche visual_prompt de cada segmento."""
        return [
            segment.model_copy(update={"visual_prompt": self.prompt_builder(segment.text, style)})
            for segment in segments
        ]

    async def generate_all(
        self,
        segments: List[VideoSegment],
        output_dir: Path,
        resolution: str
    ) -> List[str]:
        """
        Gera e ajusta todos os clipes.

        Returns:
            Caminhos dos clipes ajustados, na ordem dos segmentos

        Raises:
            GenerationError: se algum segmento esgotar as tentativas
            EncoderError: se o ajuste de duração falhar
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        pool = GenerationWorkerPool(
            key_pool=self.key_pool,
            max_concurrent=self.concurrency.max_concurrent_video,
            retry_policy=self.concurrency.video_retry,
            name="video",
            sleep=self._sleep
        )

        async def unit(index: int, segment: VideoSegment, api_key: str) -> Path:
            path = output_dir / f"segment_{index:03d}.mp4"
            return await self.generate_clip(segment, resolution, api_key, path)

        raw_paths = await pool.run(segments, unit)

        # Falha de encoder não é culpa da chave: ajuste fica fora do retry
        adjusted = []
        for segment, raw_path in zip(segments, raw_paths):
            out = output_dir / f"segment_{segment.index:03d}_adjusted.mp4"
            await asyncio.to_thread(
                self.composer.fit_to_duration, str(raw_path), str(out), segment.estimated_duration
            )
            adjusted.append(str(out))
        return adjusted

    async def generate_clip(
        self,
        segment: VideoSegment,
        resolution: str,
        api_key: str,
        output_path: Path
    ) -> Path:
        """Uma tentativa: submete, espera o job e baixa o clipe."""
        label = f"Segment {segment.index}"
        result = await self.submit(segment.visual_prompt, segment.estimated_duration, resolution, api_key)

        video_url = result.get("video_url")
        if not video_url:
            job_id = result.get("job_id")
            if not job_id:
                raise ProviderError("No job_id or video_url in video response")
            video_url = await poll_for_result(
                lambda: self.fetch_status(job_id, api_key),
                self.concurrency.video_poll,
                label=label,
                sleep=self._sleep
            )

        client = await self._get_client()
        response = await client.get(video_url)
        if response.status_code != 200:
            raise ProviderError("Video download failed", response.status_code)

        output_path.write_bytes(response.content)
        logger.info(f"[{label}] Saved clip ({len(response.content)} bytes)")
        return output_path

    async def submit(self, prompt: str, duration: float, resolution: str, api_key: str) -> dict:
        client = await self._get_client()
        response = await client.post(
            f"{self.base_url}/generate",
            json={"prompt": prompt, "duration": duration, "resolution": resolution},
            headers={"Authorization": f"Bearer {api_key}"}
        )
        if response.status_code not in (200, 201, 202):
            raise ProviderError(response.text[:200] or "Video request rejected", response.status_code)

        data = response.json()
        if data.get("error"):
            raise ProviderError(f"Video API error: {data['error']}")
        return data

    async def fetch_status(self, job_id: str, api_key: str) -> Optional[str]:
        """URL do clipe quando pronto; None enquanto processa."""
        client = await self._get_client()
        response = await client.get(
            f"{self.base_url}/jobs/{job_id}",
            headers={"Authorization": f"Bearer {api_key}"}
        )
        if response.status_code != 200:
            raise ProviderError("Video status check failed", response.status_code)

        data = response.json()
        status = data.get("status", "")
        if status == "failed":
            raise ProviderError(f"Video generation failed: {data.get('error', 'unknown')}")
        if status == "completed" and data.get("video_url"):
            return data["video_url"]
        return None
