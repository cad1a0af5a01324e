"""
Execução concorrente de chamadas de geração (TTS, clipes) com retry e rotação de chaves.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from ..models.config import PollPolicy, RetryPolicy
from .api_key_pool import APIKeyPool
from .errors import GenerationError, KeyPoolExhaustedError, PollTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

# (índice, payload, chave de API) -> resultado
UnitFn = Callable[[int, T, str], Awaitable[R]]


def _is_retryable(error: BaseException) -> bool:
    # CancelledError é BaseException: unidade cancelada não tenta de novo
    return isinstance(error, Exception) and not isinstance(error, KeyPoolExhaustedError)


class GenerationWorkerPool:
    """
    Executa N unidades independentes com no máximo `max_concurrent` em voo.

    Features:
    - Semáforo limitando a concorrência
    - Retry por unidade, com chave nova a cada tentativa
    - Blacklist da chave que falhou (cooldown da política)
    - Resultado indexado: a ordem de saída não depende da ordem de término
    - Tudo ou nada: a primeira unidade que esgota as tentativas derruba o lote
    """

    def __init__(
        self,
        key_pool: APIKeyPool,
        max_concurrent: int,
        retry_policy: RetryPolicy,
        name: str = "generation",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.key_pool = key_pool
        self.max_concurrent = max_concurrent
        self.retry_policy = retry_policy
        self.name = name
        self._sleep = sleep

    async def run(self, payloads: Sequence[T], unit_fn: UnitFn) -> List[R]:
        """
        Executa todas as unidades.

        Returns:
            Resultados na mesma ordem de `payloads`

        Raises:
            GenerationError: da primeira unidade que esgotou as tentativas
        """
        if not payloads:
            return []

        results: List[Optional[R]] = [None] * len(payloads)
        semaphore = asyncio.Semaphore(self.max_concurrent)
        completed = 0

        async def run_unit(index: int, payload: T) -> None:
            nonlocal completed
            async with semaphore:
                results[index] = await self._run_with_retry(index, payload, unit_fn)
            completed += 1
            logger.info(f"[{self.name}] Unit {index} done ({completed}/{len(payloads)})")

        logger.info(
            f"[{self.name}] Starting {len(payloads)} units (concurrency: {self.max_concurrent})"
        )
        tasks = [
            asyncio.create_task(run_unit(i, payload))
            for i, payload in enumerate(payloads)
        ]

        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            for task in tasks:
                if task in done and not task.cancelled() and task.exception() is not None:
                    raise task.exception()
        finally:
            pending = [t for t in tasks if not t.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        return results

    async def _run_with_retry(self, index: int, payload: T, unit_fn: UnitFn) -> R:
        policy = self.retry_policy
        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=wait_incrementing(
                start=policy.backoff_start,
                increment=policy.backoff_increment,
                max=policy.backoff_max
            ),
            retry=retry_if_exception(_is_retryable),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    number = attempt.retry_state.attempt_number
                    logger.debug(
                        f"[{self.name}] Unit {index} attempt {number}/{policy.max_attempts}"
                    )
                    return await self._attempt(index, payload, unit_fn)
        except Exception as e:
            logger.error(f"[{self.name}] Unit {index} failed: {e}")
            raise GenerationError(index, e) from e

    async def _attempt(self, index: int, payload: T, unit_fn: UnitFn) -> R:
        key = self.key_pool.acquire()
        try:
            result = await unit_fn(index, payload, key)
        except PollTimeoutError:
            # Submissão aceita, resultado não ficou pronto: a chave não tem culpa
            raise
        except Exception:
            # Qualquer outra falha vai para a blacklist, mesmo erro de entrada
            self.key_pool.mark_failure(key, self.retry_policy.cooldown_seconds)
            raise
        self.key_pool.mark_success(key)
        return result


async def poll_for_result(
    fetch: Callable[[], Awaitable[Optional[R]]],
    policy: PollPolicy,
    label: str = "result",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
) -> R:
    """
    Faz polling até `fetch` retornar algo diferente de None.

    `fetch` devolve None enquanto o resultado não está pronto e levanta
    exceção para falhas definitivas (que interrompem o polling).

    Raises:
        PollTimeoutError: se o orçamento de tentativas acabar
    """
    if policy.initial_delay_seconds:
        await sleep(policy.initial_delay_seconds)

    for attempt in range(policy.max_attempts):
        if attempt > 0:
            await sleep(policy.interval_seconds)

        result = await fetch()
        if result is not None:
            logger.debug(f"[{label}] Ready on poll {attempt + 1}")
            return result

        if attempt == 0:
            logger.info(f"[{label}] Not ready yet, polling every {policy.interval_seconds}s")

    raise PollTimeoutError(
        f"{label} not ready after {policy.max_attempts} polls"
    )
