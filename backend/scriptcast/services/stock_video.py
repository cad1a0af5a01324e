"""
Serviço de vídeo de banco de imagens (Pexels) como alternativa aos clipes gerados.
"""

import asyncio
import logging
import random
from pathlib import Path
from typing import List, Optional, Sequence

import httpx

from ..models.config import ApiConfig, FFmpegConfig, StockConfig
from ..models.video import StockCandidate, StockSelection, StockVideoFile
from .errors import StockVideoError
from .media_composer import MediaComposer, crossfade_duration

logger = logging.getLogger(__name__)

SCORE_EXACT = 2
SCORE_HD = 1
SCORE_FALLBACK = 0


def score_file(file: StockVideoFile, width: int, height: int) -> int:
    """Resolução exata > HD genérico > qualquer arquivo utilizável."""
    if file.width == width and file.height == height:
        return SCORE_EXACT
    if file.quality == "hd" or file.height >= 720:
        return SCORE_HD
    return SCORE_FALLBACK


def parse_candidates(
    payload: dict,
    width: int,
    height: int,
    min_duration: float,
    max_duration: float
) -> List[StockCandidate]:
    """
    Converte a resposta da busca em candidatos ranqueados.

    Mantém só vídeos com duração dentro da faixa; para cada vídeo escolhe o
    arquivo de melhor score (empate: maior resolução).
    """
    candidates = []
    for video in payload.get("videos") or []:
        duration = float(video.get("duration") or 0)
        if not (min_duration <= duration <= max_duration):
            continue

        files = [
            StockVideoFile(
                link=f.get("link", ""),
                width=f.get("width") or 0,
                height=f.get("height") or 0,
                quality=f.get("quality") or "",
                file_type=f.get("file_type") or "",
            )
            for f in video.get("video_files") or []
            if f.get("link")
        ]
        if not files:
            continue

        best = max(files, key=lambda f: (score_file(f, width, height), f.width * f.height))
        candidates.append(StockCandidate(
            video_id=video.get("id", 0),
            duration=duration,
            link=best.link,
            width=best.width,
            height=best.height,
            score=score_file(best, width, height),
        ))

    candidates.sort(key=lambda c: (c.score, c.resolution), reverse=True)
    return candidates


def select_candidates(
    candidates: Sequence[StockCandidate],
    target: float,
    buffer: float,
    max_clips: int
) -> StockSelection:
    """Acumula candidatos até cobrir target + buffer ou atingir max_clips."""
    selected: List[StockCandidate] = []
    total = 0.0
    for candidate in candidates:
        selected.append(candidate)
        total += candidate.duration
        if total >= target + buffer or len(selected) >= max_clips:
            break
    return StockSelection(candidates=selected, total_duration=total)


def plan_extension(
    durations: Sequence[float],
    target: float,
    margin: float,
    transition: float,
    max_segments: int,
    rng: random.Random
) -> List[int]:
    """
    Ordem final dos clipes (índices), repetindo clipes já baixados.

    Cada junção consome `transition` segundos, então o que conta é a
    duração efetiva. Repete clipes aleatórios até passar de target + margin
    ou chegar a max_segments.
    """
    order = list(range(len(durations)))
    effective = crossfade_duration(durations, transition)
    while effective < target + margin and len(order) < max_segments:
        idx = rng.randrange(len(durations))
        order.append(idx)
        effective += durations[idx] - transition
    return order


class StockClipSelector:
    """
    Monta a trilha de vídeo a partir de vídeos do Pexels.

    Features:
    - Busca por palavras-chave (paisagem, faixa de duração)
    - Ranking por resolução alvo
    - Extensão sem novas chamadas de rede (repete clipes baixados)
    - Clipe único vira loop
    - Resultado sempre cortado em target + margem de segurança
    """

    def __init__(
        self,
        api_config: ApiConfig,
        stock_config: StockConfig,
        ffmpeg_config: FFmpegConfig,
        composer: MediaComposer,
        client: Optional[httpx.AsyncClient] = None,
        rng: Optional[random.Random] = None
    ):
        self.api_key = api_config.pexels_api_key
        self.base_url = api_config.pexels_base_url.rstrip("/")
        self.config = stock_config
        self.ffmpeg_config = ffmpeg_config
        self.composer = composer
        self._client = client
        self._rng = rng or random.Random()

    async def _get_client(self) -> httpx.AsyncClient:
        """Retorna cliente HTTP reutilizável."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(connect=30, read=120, write=30, pool=60),
                follow_redirects=True
            )
        return self._client

    async def close(self):
        """Fecha o cliente HTTP."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def search(self, keywords: str) -> List[StockCandidate]:
        """Busca vídeos e devolve candidatos ranqueados."""
        if not self.api_key:
            raise StockVideoError("PEXELS_API_KEY is not configured")

        client = await self._get_client()
        response = await client.get(
            f"{self.base_url}/search",
            params={
                "query": keywords,
                "per_page": self.config.per_page,
                "orientation": "landscape",
                "size": "medium",
            },
            headers={"Authorization": self.api_key}
        )
        if response.status_code != 200:
            raise StockVideoError(f"Pexels API returned status {response.status_code}")

        candidates = parse_candidates(
            response.json(),
            self.ffmpeg_config.width,
            self.ffmpeg_config.height,
            self.config.min_clip_duration,
            self.config.max_clip_duration,
        )
        logger.info(f"[Stock] {len(candidates)} usable videos for '{keywords}'")
        return candidates

    async def download(self, url: str, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        client = await self._get_client()
        async with client.stream("GET", url) as response:
            if response.status_code != 200:
                raise StockVideoError(f"Download failed with status {response.status_code}")
            with open(path, "wb") as f:
                async for data in response.aiter_bytes():
                    f.write(data)
        return path

    async def prepare(self, keywords: str, target_duration: float, output_dir: Path) -> str:
        """
        Busca, baixa e monta a trilha de vídeo.

        Args:
            keywords: Termos de busca
            target_duration: Duração do áudio final (segundos)
            output_dir: Diretório "stock" do job

        Returns:
            Caminho do vídeo com duração target + margem
        """
        cfg = self.config
        keywords = keywords.strip() or cfg.default_keywords

        candidates = await self.search(keywords)
        if not candidates:
            raise StockVideoError(
                f"No videos between {cfg.min_clip_duration:.0f}-{cfg.max_clip_duration:.0f}s "
                f"found for keywords: {keywords}"
            )

        selection = select_candidates(candidates, target_duration, cfg.selection_buffer, cfg.max_clips)
        logger.info(
            f"[Stock] Selected {len(selection.candidates)} clips "
            f"({selection.total_duration:.1f}s raw, target {target_duration:.1f}s)"
        )

        paths = []
        for i, candidate in enumerate(selection.candidates):
            logger.info(f"[Stock] Downloading clip {i + 1}/{len(selection.candidates)}")
            paths.append(str(await self.download(candidate.link, output_dir / f"clip_{i:03d}.mp4")))

        final_target = target_duration + cfg.safety_margin
        final_path = str(output_dir / "final_stock.mp4")

        if len(paths) == 1:
            await asyncio.to_thread(self.composer.loop_to_length, paths[0], final_path, final_target)
            return final_path

        durations = [await asyncio.to_thread(self.composer.get_duration, p) for p in paths]
        order = plan_extension(
            durations, target_duration, cfg.safety_margin,
            cfg.transition_duration, cfg.max_segments, self._rng
        )
        if len(order) > len(paths):
            logger.info(f"[Stock] Extended to {len(order)} segments by repeating clips")

        merged_path = str(output_dir / "merged_stock.mp4")
        await asyncio.to_thread(
            self.composer.merge_video_transition,
            [paths[i] for i in order],
            merged_path,
            cfg.transition_duration
        )
        await asyncio.to_thread(self.composer.trim, merged_path, final_path, final_target)
        return final_path
