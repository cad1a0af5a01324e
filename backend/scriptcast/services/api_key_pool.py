"""
Pool de chaves de API com rotação e blacklist temporária.
"""

import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .errors import KeyPoolExhaustedError

logger = logging.getLogger(__name__)


@dataclass
class CredentialRecord:
    """Estado de uma chave dentro do pool."""
    key: str
    usage_count: int = 0
    last_used_at: Optional[float] = None
    blacklisted_until: Optional[float] = None


class APIKeyPool:
    """
    Gerencia as chaves de um provedor.

    Seleção: entre as chaves fora da blacklist, sorteia uma da "metade
    menos usada" (uso <= uso mínimo + disponíveis // 2). O contador conta
    tentativas, não sucessos.

    Todo acesso ao estado passa pelo mesmo lock, mantido apenas durante a
    leitura/alteração (nunca durante chamadas de rede).
    """

    def __init__(
        self,
        keys: List[str],
        name: str = "api",
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None
    ):
        self.name = name
        self._clock = clock
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._records: Dict[str, CredentialRecord] = {}
        for key in keys:
            if key and key not in self._records:
                self._records[key] = CredentialRecord(key=key)

    def __len__(self) -> int:
        return len(self._records)

    def acquire(self) -> str:
        """
        Retorna uma chave disponível e registra o uso.

        Raises:
            KeyPoolExhaustedError: se todas as chaves estão em blacklist
        """
        with self._lock:
            now = self._clock()
            self._clean_blacklist(now)

            available = self._available(now)
            if not available:
                raise KeyPoolExhaustedError(f"No available API keys in pool '{self.name}'")

            min_usage = min(r.usage_count for r in available)
            threshold = min_usage + len(available) // 2
            candidates = [r for r in available if r.usage_count <= threshold]

            record = self._rng.choice(candidates)
            record.usage_count += 1
            record.last_used_at = now
            return record.key

    def mark_failure(self, key: str, cooldown: float) -> None:
        """Coloca a chave na blacklist por `cooldown` segundos (sobrescreve a anterior)."""
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return
            record.blacklisted_until = self._clock() + cooldown
        logger.warning(f"[{self.name}] Key ...{key[-4:]} blacklisted for {cooldown:.0f}s")

    def mark_success(self, key: str) -> None:
        """Nada a fazer: o uso já foi contado em acquire()."""
        pass

    def get_stats(self) -> dict:
        """Estatísticas para diagnóstico."""
        with self._lock:
            now = self._clock()
            available = self._available(now)
            return {
                "total_keys": len(self._records),
                "available_keys": len(available),
                "blacklisted": len(self._records) - len(available),
                "usage_counts": {k: r.usage_count for k, r in self._records.items()},
            }

    def _available(self, now: float) -> List[CredentialRecord]:
        # Chamar com o lock adquirido
        return [
            r for r in self._records.values()
            if r.blacklisted_until is None or now >= r.blacklisted_until
        ]

    def _clean_blacklist(self, now: float) -> None:
        # Chamar com o lock adquirido
        for record in self._records.values():
            if record.blacklisted_until is not None and now >= record.blacklisted_until:
                record.blacklisted_until = None
