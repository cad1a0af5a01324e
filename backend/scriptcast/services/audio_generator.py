"""
Serviço de geração de áudio (TTS) usando a API assíncrona da FPT.AI.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

import httpx

from ..models.config import ApiConfig, ConcurrencyConfig
from ..models.video import AudioChunk, TextChunk
from .api_key_pool import APIKeyPool
from .errors import ProviderError
from .worker_pool import GenerationWorkerPool, poll_for_result

logger = logging.getLogger(__name__)


class RequestThrottle:
    """Garante um intervalo mínimo entre submissões consecutivas."""

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last: Optional[float] = None

    async def wait(self) -> None:
        async with self._lock:
            if self._last is not None:
                remaining = self.min_interval - (self._clock() - self._last)
                if remaining > 0:
                    await self._sleep(remaining)
            self._last = self._clock()


class SpeechGenerator:
    """
    Gera áudio para cada chunk de texto.

    Features:
    - Submissão assíncrona (a API devolve uma URL que fica pronta depois)
    - Polling limitado da URL; esgotar o polling conta como uma tentativa
    - Rotação de chaves e blacklist via GenerationWorkerPool
    - Intervalo mínimo entre submissões (limite de taxa do provedor)
    """

    def __init__(
        self,
        api_config: ApiConfig,
        key_pool: APIKeyPool,
        concurrency: ConcurrencyConfig,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.base_url = api_config.tts_base_url
        self.key_pool = key_pool
        self.concurrency = concurrency
        self._client = client
        self._sleep = sleep
        self._throttle = RequestThrottle(concurrency.tts_min_request_interval, sleep=sleep)

    async def _get_client(self) -> httpx.AsyncClient:
        """Retorna cliente HTTP reutilizável."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(connect=30, read=120, write=30, pool=60),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10)
            )
        return self._client

    async def close(self):
        """Fecha o cliente HTTP."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def generate_all(
        self,
        chunks: List[TextChunk],
        voice: str,
        speed: float,
        output_dir: Path
    ) -> List[AudioChunk]:
        """
        Gera áudio para todos os chunks.

        Args:
            chunks: Chunks do TextProcessor
            voice: Voz do provedor (ex: "banmai")
            speed: Multiplicador de velocidade
            output_dir: Diretório de áudio do job

        Returns:
            Lista de AudioChunk na ordem dos chunks

        Raises:
            GenerationError: se algum chunk esgotar as tentativas
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        pool = GenerationWorkerPool(
            key_pool=self.key_pool,
            max_concurrent=self.concurrency.max_concurrent_tts,
            retry_policy=self.concurrency.tts_retry,
            name="tts",
            sleep=self._sleep
        )

        async def unit(index: int, chunk: TextChunk, api_key: str) -> AudioChunk:
            path = output_dir / f"chunk_{index:03d}.mp3"
            await self.generate_chunk(chunk.text, voice, speed, api_key, path, label=f"Chunk {index}")
            return AudioChunk(index=chunk.index, path=str(path), text=chunk.text)

        return await pool.run(chunks, unit)

    async def generate_chunk(
        self,
        text: str,
        voice: str,
        speed: float,
        api_key: str,
        output_path: Path,
        label: str = "Chunk"
    ) -> Path:
        """Uma tentativa completa: submete, faz polling e salva o arquivo."""
        async_url = await self.submit(text, voice, speed, api_key)
        logger.info(f"[{label}] Submitted, waiting for {async_url}")

        data = await poll_for_result(
            lambda: self.fetch(async_url),
            self.concurrency.tts_poll,
            label=label,
            sleep=self._sleep
        )

        output_path.write_bytes(data)
        logger.info(f"[{label}] Saved {len(data)} bytes to {output_path.name}")
        return output_path

    async def submit(self, text: str, voice: str, speed: float, api_key: str) -> str:
        """
        Envia o texto para síntese.

        Returns:
            URL onde o áudio ficará disponível

        Raises:
            ProviderError: resposta de erro ou sem URL
        """
        await self._throttle.wait()
        client = await self._get_client()

        response = await client.post(
            self.base_url,
            content=text.encode("utf-8"),
            headers={
                "api-key": api_key,
                "voice": voice,
                "speed": f"{speed:.1f}",
            }
        )

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code != 200:
            message = body.get("message") or response.text[:200] or "TTS request rejected"
            raise ProviderError(message, response.status_code)

        if body.get("error"):
            raise ProviderError(f"TTS API error: {body.get('message', '')} (code: {body['error']})")

        async_url = body.get("async")
        if not async_url:
            raise ProviderError("No async URL in TTS response")

        logger.debug(f"TTS request accepted (request_id: {body.get('request_id', '')})")
        return async_url

    async def fetch(self, async_url: str) -> Optional[bytes]:
        """Baixa o áudio; None enquanto o arquivo ainda não existe."""
        client = await self._get_client()
        try:
            response = await client.get(async_url)
        except httpx.TransportError as e:
            logger.debug(f"Audio not reachable yet: {e}")
            return None

        if response.status_code != 200 or not response.content:
            return None
        return response.content
