"""
Registro em memória dos jobs e das tasks que os processam.
"""

import asyncio
import logging
import threading
import uuid
from datetime import datetime
from typing import Callable, Coroutine, Dict, List, Optional

from ..models.job import Job, JobStatusEnum
from ..models.video import MediaAsset, MediaStage

logger = logging.getLogger(__name__)


class JobRegistry:
    """
    Mapa job_id -> Job, protegido por um único lock.

    Features:
    - Leituras devolvem cópias (ninguém altera o estado por fora)
    - Progresso nunca volta para trás
    - Estado terminal é definitivo
    - Uma task por job; task que termina sem estado terminal marca o job como falho
    - Limpeza adiada (após o download)
    - Arquivos de cada etapa registrados em ordem, sem sobrescrita
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: Dict[str, Job] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._cleanups: Dict[str, asyncio.Task] = {}

    def create(self, job_id: Optional[str] = None) -> Job:
        job = Job(job_id=job_id or str(uuid.uuid4()))
        with self._lock:
            if job.job_id in self._jobs:
                raise ValueError(f"Job already exists: {job.job_id}")
            self._jobs[job.job_id] = job
        return job.model_copy()

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy() if job else None

    def list_jobs(self) -> List[Job]:
        with self._lock:
            return [job.model_copy() for job in self._jobs.values()]

    def update_progress(self, job_id: str, progress: int, step: str) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.is_terminal:
                return
            job.progress = max(job.progress, min(progress, 100))
            job.current_step = step
            job.updated_at = datetime.now()

    def record_asset(self, job_id: str, path: str, stage: MediaStage) -> None:
        """
        Registra um arquivo produzido por uma etapa.

        A lista só cresce: cada etapa grava um arquivo novo, nunca
        sobrescreve a saída de uma etapa anterior.

        Raises:
            ValueError: se o caminho já foi registrado para o job
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.is_terminal:
                return
            if any(asset.path == path for asset in job.assets):
                raise ValueError(f"Asset already recorded for job {job_id}: {path}")
            # Nova lista: cópias já entregues por get() não mudam
            job.assets = [*job.assets, MediaAsset(path=path, stage=stage)]

    def mark_completed(self, job_id: str, video_path: str, subtitle_path: Optional[str] = None) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.is_terminal:
                return
            job.status = JobStatusEnum.COMPLETED
            job.progress = 100
            job.current_step = "Completed"
            job.video_path = video_path
            job.subtitle_path = subtitle_path
            if all(asset.path != video_path for asset in job.assets):
                job.assets = [*job.assets, MediaAsset(path=video_path, stage=MediaStage.FINAL)]
            job.updated_at = datetime.now()

    def mark_failed(self, job_id: str, error: str) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.is_terminal:
                return
            job.status = JobStatusEnum.FAILED
            job.current_step = "Failed"
            job.error = error
            job.updated_at = datetime.now()

    def remove(self, job_id: str) -> bool:
        with self._lock:
            removed = self._jobs.pop(job_id, None) is not None
            task = self._cleanups.pop(job_id, None)
        if task and task is not asyncio.current_task():
            task.cancel()
        return removed

    # ------------------------------------------------------------------ tasks

    def spawn(self, job_id: str, coro: Coroutine) -> asyncio.Task:
        """Inicia a task do job e garante que ela termine em estado terminal."""
        task = asyncio.create_task(coro, name=f"job-{job_id}")
        with self._lock:
            self._tasks[job_id] = task

        def _on_done(t: asyncio.Task) -> None:
            with self._lock:
                self._tasks.pop(job_id, None)
            if t.cancelled():
                self.mark_failed(job_id, "job cancelled")
            elif t.exception() is not None:
                logger.error(f"Job {job_id} task crashed: {t.exception()}")
                self.mark_failed(job_id, f"unexpected error: {t.exception()}")

        task.add_done_callback(_on_done)
        return task

    def active_tasks(self) -> List[asyncio.Task]:
        with self._lock:
            return list(self._tasks.values())

    def schedule_cleanup(
        self,
        job_id: str,
        delay: float,
        cleanup: Callable[[str], None]
    ) -> asyncio.Task:
        """Agenda a remoção do job (registro + arquivos) depois de `delay` segundos."""
        async def _cleanup_later():
            await asyncio.sleep(delay)
            cleanup(job_id)
            self.remove(job_id)
            logger.info(f"Job {job_id} cleaned up")

        with self._lock:
            previous = self._cleanups.get(job_id)
        if previous and not previous.done():
            return previous

        task = asyncio.create_task(_cleanup_later(), name=f"cleanup-{job_id}")
        with self._lock:
            self._cleanups[job_id] = task
        return task

    async def shutdown(self) -> None:
        """Cancela tasks pendentes (desligamento da aplicação)."""
        with self._lock:
            tasks = list(self._tasks.values()) + list(self._cleanups.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
