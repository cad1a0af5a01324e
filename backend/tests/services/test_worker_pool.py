"""
Tests for scriptcast.services.worker_pool
"""

import asyncio
import random

import pytest

from scriptcast.models.config import PollPolicy, RetryPolicy
from scriptcast.services.api_key_pool import APIKeyPool
from scriptcast.services.errors import (
    GenerationError,
    KeyPoolExhaustedError,
    PollTimeoutError,
    ProviderError,
)
from scriptcast.services.worker_pool import GenerationWorkerPool, poll_for_result


@pytest.fixture
def policy():
    return RetryPolicy(max_attempts=3, backoff_start=1.0, backoff_increment=1.0, cooldown_seconds=60.0)


def make_pool(keys, clock, policy, sleep, max_concurrent=2):
    key_pool = APIKeyPool(keys, name="test", clock=clock, rng=random.Random(0))
    return GenerationWorkerPool(key_pool, max_concurrent, policy, name="test", sleep=sleep)


@pytest.mark.asyncio
async def test_results_follow_input_order(fake_clock, policy, fake_sleep):
    pool = make_pool(["k1", "k2"], fake_clock, policy, fake_sleep, max_concurrent=3)

    async def unit(index, payload, key):
        # Unidades posteriores terminam primeiro
        await asyncio.sleep(0.01 * (3 - index))
        return f"done-{payload}"

    results = await pool.run(["a", "b", "c"], unit)
    assert results == ["done-a", "done-b", "done-c"]


@pytest.mark.asyncio
async def test_concurrency_ceiling(fake_clock, policy, fake_sleep):
    pool = make_pool(["k1"], fake_clock, policy, fake_sleep, max_concurrent=2)
    in_flight = 0
    peak = 0

    async def unit(index, payload, key):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return index

    results = await pool.run(list(range(6)), unit)
    assert results == list(range(6))
    assert peak == 2


@pytest.mark.asyncio
async def test_empty_batch(fake_clock, policy, fake_sleep):
    pool = make_pool(["k1"], fake_clock, policy, fake_sleep)

    async def unit(index, payload, key):
        raise AssertionError("should not run")

    assert await pool.run([], unit) == []


@pytest.mark.asyncio
async def test_failing_unit_fails_batch_with_its_index(fake_clock, policy, fake_sleep):
    pool = make_pool(["k1", "k2", "k3"], fake_clock, policy, fake_sleep, max_concurrent=3)
    attempts = {0: 0, 1: 0, 2: 0}

    async def unit(index, payload, key):
        attempts[index] += 1
        fake_clock.advance(61)  # cada tentativa libera as chaves em cooldown
        if index == 1:
            raise ProviderError("bad request", 400)
        return index

    with pytest.raises(GenerationError) as exc_info:
        await pool.run(["a", "b", "c"], unit)

    assert exc_info.value.unit_index == 1
    assert isinstance(exc_info.value.cause, ProviderError)
    assert attempts[1] == 3


@pytest.mark.asyncio
async def test_cancelled_sibling_is_not_resubmitted(fake_clock, fake_sleep):
    policy = RetryPolicy(max_attempts=3, backoff_start=0, backoff_increment=0, cooldown_seconds=0)
    pool = make_pool(["k1", "k2", "k3"], fake_clock, policy, fake_sleep, max_concurrent=2)
    calls = {0: 0, 1: 0}
    cancelled = asyncio.Event()

    async def unit(index, payload, key):
        calls[index] += 1
        if index == 0:
            await asyncio.sleep(0)
            raise RuntimeError("provider down")
        try:
            await asyncio.sleep(0.5)
        except asyncio.CancelledError:
            cancelled.set()
            raise
        return index

    with pytest.raises(GenerationError) as exc_info:
        await pool.run(["a", "b"], unit)

    assert exc_info.value.unit_index == 0
    assert calls == {0: 3, 1: 1}
    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_failed_key_is_blacklisted_and_rotated(fake_clock, policy, fake_sleep):
    pool = make_pool(["bad", "good"], fake_clock, policy, fake_sleep)
    used = []

    async def unit(index, payload, key):
        used.append(key)
        if key == "bad":
            raise ProviderError("rate limited", 429)
        return key

    results = await pool.run(["x"], unit)

    assert results == ["good"]
    assert used.count("bad") <= 1
    stats = pool.key_pool.get_stats()
    assert stats["blacklisted"] == (1 if "bad" in used else 0)


@pytest.mark.asyncio
async def test_backoff_increases_between_attempts(fake_clock, fake_sleep):
    policy = RetryPolicy(max_attempts=3, backoff_start=1.0, backoff_increment=1.0, cooldown_seconds=0)
    pool = make_pool(["k1"], fake_clock, policy, fake_sleep)
    calls = 0

    async def unit(index, payload, key):
        nonlocal calls
        calls += 1
        if calls < 3:
            raise ProviderError("temporary", 503)
        return "ok"

    assert await pool.run(["x"], unit) == ["ok"]
    waits = [call.args[0] for call in fake_sleep.await_args_list]
    assert waits == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhausted_pool_is_not_retried(fake_clock, policy, fake_sleep):
    pool = make_pool(["only"], fake_clock, policy, fake_sleep)
    calls = 0

    async def unit(index, payload, key):
        nonlocal calls
        calls += 1
        raise ProviderError("rejected", 401)

    with pytest.raises(GenerationError) as exc_info:
        await pool.run(["x"], unit)

    # 1a tentativa falha e bloqueia a única chave; a 2a não encontra chave
    assert calls == 1
    assert isinstance(exc_info.value.cause, KeyPoolExhaustedError)


@pytest.mark.asyncio
async def test_poll_timeout_consumes_attempt_without_blacklisting(fake_clock, policy, fake_sleep):
    pool = make_pool(["only"], fake_clock, policy, fake_sleep)
    calls = 0

    async def unit(index, payload, key):
        nonlocal calls
        calls += 1
        if calls == 1:
            raise PollTimeoutError("not ready")
        return "ok"

    assert await pool.run(["x"], unit) == ["ok"]
    assert calls == 2
    assert pool.key_pool.get_stats()["blacklisted"] == 0


class TestPollForResult:

    @pytest.mark.asyncio
    async def test_returns_first_ready_result(self, fake_sleep):
        responses = iter([None, None, b"audio"])

        async def fetch():
            return next(responses)

        policy = PollPolicy(interval_seconds=5, max_attempts=10, initial_delay_seconds=2)
        assert await poll_for_result(fetch, policy, sleep=fake_sleep) == b"audio"

        waits = [call.args[0] for call in fake_sleep.await_args_list]
        assert waits == [2, 5, 5]

    @pytest.mark.asyncio
    async def test_budget_exhaustion_raises(self, fake_sleep):
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            return None

        policy = PollPolicy(interval_seconds=1, max_attempts=4, initial_delay_seconds=0)
        with pytest.raises(PollTimeoutError):
            await poll_for_result(fetch, policy, sleep=fake_sleep)
        assert calls == 4
        assert fake_sleep.await_count == 3

    @pytest.mark.asyncio
    async def test_fetch_errors_stop_polling(self, fake_sleep):
        async def fetch():
            raise ProviderError("job failed")

        with pytest.raises(ProviderError, match="job failed"):
            await poll_for_result(fetch, PollPolicy(initial_delay_seconds=0), sleep=fake_sleep)
