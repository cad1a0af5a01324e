from unittest.mock import AsyncMock

import pytest

from scriptcast.models.config import FullConfig


class FakeClock:
    """Relógio controlado pelo teste."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_sleep():
    """Substitui asyncio.sleep: registra a espera e retorna na hora."""
    return AsyncMock(return_value=None)


@pytest.fixture
def config(tmp_path):
    cfg = FullConfig()
    cfg.storage.temp_dir = str(tmp_path / "temp")
    cfg.storage.static_dir = str(tmp_path / "static")
    return cfg
