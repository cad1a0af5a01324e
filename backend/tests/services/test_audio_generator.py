"""
Tests for scriptcast.services.audio_generator
"""

import random

import httpx
import pytest

from scriptcast.models.config import ApiConfig, ConcurrencyConfig, PollPolicy, RetryPolicy
from scriptcast.models.video import TextChunk
from scriptcast.services.api_key_pool import APIKeyPool
from scriptcast.services.audio_generator import RequestThrottle, SpeechGenerator
from scriptcast.services.errors import GenerationError, ProviderError

TTS_URL = "https://api.fpt.ai/hmi/tts/v5"


def make_generator(handler, keys, fake_clock, fake_sleep, retry=None):
    concurrency = ConcurrencyConfig(
        tts_retry=retry or RetryPolicy(max_attempts=3, cooldown_seconds=60),
        tts_poll=PollPolicy(interval_seconds=5, max_attempts=3, initial_delay_seconds=2),
    )
    pool = APIKeyPool(keys, name="tts", clock=fake_clock, rng=random.Random(0))
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SpeechGenerator(ApiConfig(), pool, concurrency, client=client, sleep=fake_sleep)


class FptServer:
    """Fake do provedor: aceita a submissão e libera o arquivo depois de N polls."""

    def __init__(self, ready_after=2, submit_status=200, submit_body=None):
        self.ready_after = ready_after
        self.submit_status = submit_status
        self.submit_body = submit_body
        self.submissions = []
        self.polls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            self.submissions.append(request)
            body = self.submit_body or {
                "async": "https://file.fpt.ai/audio/abc.mp3",
                "error": 0,
                "message": "ok",
                "request_id": "abc",
            }
            return httpx.Response(self.submit_status, json=body)

        self.polls += 1
        if self.polls <= self.ready_after:
            return httpx.Response(404)
        return httpx.Response(200, content=b"ID3-audio")


@pytest.mark.asyncio
async def test_generate_all_submits_polls_and_saves(tmp_path, fake_clock, fake_sleep):
    server = FptServer(ready_after=2)
    generator = make_generator(server, ["key-1"], fake_clock, fake_sleep)

    chunks = [TextChunk(index=0, text="Xin chào các bạn.")]
    result = await generator.generate_all(chunks, voice="banmai", speed=1.0, output_dir=tmp_path)

    assert len(result) == 1
    assert result[0].path == str(tmp_path / "chunk_000.mp3")
    assert result[0].text == "Xin chào các bạn."
    assert (tmp_path / "chunk_000.mp3").read_bytes() == b"ID3-audio"

    request = server.submissions[0]
    assert str(request.url) == TTS_URL
    assert request.headers["api-key"] == "key-1"
    assert request.headers["voice"] == "banmai"
    assert request.headers["speed"] == "1.0"
    assert request.content.decode("utf-8") == "Xin chào các bạn."
    assert server.polls == 3


@pytest.mark.asyncio
async def test_results_keep_chunk_order(tmp_path, fake_clock, fake_sleep):
    server = FptServer(ready_after=0)
    generator = make_generator(server, ["k1", "k2"], fake_clock, fake_sleep)

    chunks = [TextChunk(index=i, text=f"Sentence {i}.") for i in range(4)]
    result = await generator.generate_all(chunks, "banmai", 1.2, tmp_path)

    assert [c.index for c in result] == [0, 1, 2, 3]
    assert [c.path for c in result] == [str(tmp_path / f"chunk_{i:03d}.mp3") for i in range(4)]
    assert all(r.headers["speed"] == "1.2" for r in server.submissions)


@pytest.mark.asyncio
async def test_rejected_submission_blacklists_key(tmp_path, fake_clock, fake_sleep):
    server = FptServer(submit_status=401, submit_body={"error": 1, "message": "invalid api key"})
    generator = make_generator(server, ["only"], fake_clock, fake_sleep)

    with pytest.raises(GenerationError) as exc_info:
        await generator.generate_all([TextChunk(index=0, text="Hi.")], "banmai", 1.0, tmp_path)

    assert exc_info.value.unit_index == 0
    assert generator.key_pool.get_stats()["blacklisted"] == 1


@pytest.mark.asyncio
async def test_provider_error_code_in_body(fake_clock, fake_sleep):
    server = FptServer(submit_body={"error": 3, "message": "quota exceeded"})
    generator = make_generator(server, ["k"], fake_clock, fake_sleep)

    with pytest.raises(ProviderError, match="quota exceeded"):
        await generator.submit("Hi.", "banmai", 1.0, "k")


@pytest.mark.asyncio
async def test_missing_async_url(fake_clock, fake_sleep):
    server = FptServer(submit_body={"error": 0, "message": "ok"})
    generator = make_generator(server, ["k"], fake_clock, fake_sleep)

    with pytest.raises(ProviderError, match="async URL"):
        await generator.submit("Hi.", "banmai", 1.0, "k")


@pytest.mark.asyncio
async def test_poll_timeout_resubmits(tmp_path, fake_clock, fake_sleep):
    # 3 polls por tentativa: a 1a submissão nunca fica pronta, a 2a sim
    server = FptServer(ready_after=3)
    generator = make_generator(server, ["k"], fake_clock, fake_sleep)

    result = await generator.generate_all([TextChunk(index=0, text="Hi.")], "banmai", 1.0, tmp_path)

    assert len(server.submissions) == 2
    assert result[0].path.endswith("chunk_000.mp3")
    assert generator.key_pool.get_stats()["blacklisted"] == 0


@pytest.mark.asyncio
async def test_throttle_spaces_requests(fake_sleep):
    times = iter([0.0, 0.1, 0.5])
    throttle = RequestThrottle(0.5, clock=lambda: next(times), sleep=fake_sleep)

    await throttle.wait()
    await throttle.wait()

    fake_sleep.assert_awaited_once()
    assert fake_sleep.await_args.args[0] == pytest.approx(0.4)
