import asyncio
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from insta_lens.analyzers.llm_client import LLMResponse
from insta_lens.analyzers.prompts import NO_POSTS_TEXT, PromptKind
from insta_lens.analyzers.response_parser import error_analysis
from insta_lens.api.cache_store import MemoryCacheStore
from insta_lens.config import Settings
from insta_lens.errors import CacheError, ProfileNotFoundError, SessionError
from insta_lens.models import Post
from insta_lens.pipeline import AnalysisPipeline, normalise_username
from insta_lens.platforms.instagram.session import SessionCredentials

pytestmark = pytest.mark.asyncio

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
SETTINGS = Settings(openai_api_key="test-key", llm_model="gemini-2.0-flash", llm_max_tokens=6000, llm_temperature=0.3)
CREDENTIALS = SessionCredentials(cookies={"csrftoken": "tok"})

LLM_JSON = json.dumps({
    "analysis_metadata": {"timestamp_utc": "2024-05-01T12:00:00Z", "model_used": "gemini-2.0-flash", "analysis_version": "1.0"},
    "initial_profile_analysis": {"profile_overview": "Fresh analysis"},
})


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _llm(text: str = LLM_JSON) -> MagicMock:
    llm = MagicMock()
    llm.complete = AsyncMock(return_value=LLMResponse(text=text, model="gemini-2.0-flash"))
    return llm


def _pipeline(cache, profile, *, llm=None, fetcher=None, clock=None):
    session = AsyncMock(return_value=CREDENTIALS)
    fetcher = fetcher or AsyncMock(return_value=profile)
    return AnalysisPipeline(
        cache,
        llm or _llm(),
        session_provider=session,
        profile_fetcher=fetcher,
        settings=SETTINGS,
        clock=clock or FakeClock(),
    )


@pytest.mark.parametrize("raw, expected", [("alice", "alice"), ("@Alice", "alice"), ("  @ALICE ", "alice")])
async def test_normalise_username(raw, expected):
    assert normalise_username(raw) == expected


# ── fresh run ────────────────────────────────────────────────────────────────

async def test_cache_miss_runs_full_pipeline(profile):
    clock = FakeClock()
    cache = MemoryCacheStore(clock=clock)
    llm = _llm()
    fetcher = AsyncMock(return_value=profile)
    pipeline = _pipeline(cache, profile, llm=llm, fetcher=fetcher, clock=clock)

    outcome = await pipeline.run("@Alice")

    assert outcome.ok
    assert outcome.username == "alice"
    assert outcome.served_from_cache is False
    assert outcome.cached_at == T0
    assert outcome.analysis.initial_profile_analysis.profile_overview == "Fresh analysis"
    fetcher.assert_awaited_once_with("alice", CREDENTIALS)
    kwargs = llm.complete.call_args.kwargs
    assert kwargs == {"model": "gemini-2.0-flash", "max_tokens": 6000, "temperature": 0.3}
    assert "alice" in cache


async def test_cache_hit_skips_fetch_and_llm(profile):
    clock = FakeClock()
    cache = MemoryCacheStore(clock=clock)
    await cache.put("alice", profile, error_analysis("old", username="alice"))
    clock.now += timedelta(days=2)
    llm = _llm()
    fetcher = AsyncMock(return_value=profile)
    pipeline = _pipeline(cache, profile, llm=llm, fetcher=fetcher, clock=clock)

    outcome = await pipeline.run("alice")

    assert outcome.served_from_cache is True
    assert outcome.cached_at == T0
    fetcher.assert_not_awaited()
    llm.complete.assert_not_awaited()


async def test_not_found_returns_error_without_cache_write(profile):
    """Scenario A: unknown profile."""
    cache = MemoryCacheStore()
    llm = _llm()
    fetcher = AsyncMock(side_effect=ProfileNotFoundError("Profile not found: ghost", status_code=404))
    pipeline = _pipeline(cache, profile, llm=llm, fetcher=fetcher)

    outcome = await pipeline.run("ghost")

    assert not outcome.ok
    assert outcome.error_kind == "NotFound"
    assert outcome.error == "Profile not found: ghost"
    assert outcome.profile is None
    assert "ghost" not in cache
    llm.complete.assert_not_awaited()


async def test_session_failure_returns_error(profile):
    cache = MemoryCacheStore()
    pipeline = _pipeline(cache, profile)
    pipeline.session_provider = AsyncMock(side_effect=SessionError("Browser session failed: timeout"))

    outcome = await pipeline.run("alice")

    assert outcome.error_kind == "SessionError"
    assert "alice" not in cache


async def test_stale_entry_is_refreshed(profile):
    """Scenario B: a 10-day-old entry is replaced with a new timestamp."""
    clock = FakeClock()
    cache = MemoryCacheStore(clock=clock)
    await cache.put("alice", profile, error_analysis("old", username="alice"))
    clock.now = T0 + timedelta(days=10)
    fetcher = AsyncMock(return_value=profile)
    pipeline = _pipeline(cache, profile, fetcher=fetcher, clock=clock)

    outcome = await pipeline.run("alice")

    assert outcome.served_from_cache is False
    fetcher.assert_awaited_once()
    entry = await cache.get("alice")
    assert entry.timestamp == T0 + timedelta(days=10)
    assert entry.report.initial_profile_analysis.profile_overview == "Fresh analysis"


async def test_refresh_bypasses_fresh_entry(profile):
    """Scenario D: forced refresh of a one-hour-old entry."""
    clock = FakeClock()
    cache = MemoryCacheStore(clock=clock)
    await cache.put("alice", profile, error_analysis("old", username="alice"))
    clock.now = T0 + timedelta(hours=1)
    fetcher = AsyncMock(return_value=profile)
    pipeline = _pipeline(cache, profile, fetcher=fetcher, clock=clock)

    outcome = await pipeline.run("alice", refresh=True)

    assert outcome.served_from_cache is False
    fetcher.assert_awaited_once()
    assert (await cache.get("alice")).timestamp == T0 + timedelta(hours=1)


async def test_prose_from_llm_is_cached_as_error_result(profile):
    """Scenario C: model ignores the JSON instruction."""
    cache = MemoryCacheStore()
    pipeline = _pipeline(cache, profile, llm=_llm("Sorry, I cannot help with that."))

    outcome = await pipeline.run("alice")

    assert outcome.ok
    assert outcome.analysis.is_error
    assert outcome.analysis.initial_profile_analysis.profile_overview.startswith("Error analyzing profile:")
    assert outcome.analysis.profile_context.username == "alice"
    assert "alice" in cache


async def test_cache_write_failure_still_returns_result(profile):
    cache = MagicMock()
    cache.get = AsyncMock(return_value=None)
    cache.put = AsyncMock(side_effect=CacheError("disk full"))
    pipeline = _pipeline(cache, profile)

    outcome = await pipeline.run("alice")

    assert outcome.ok
    assert outcome.cached_at is None
    assert outcome.served_from_cache is False


async def test_cache_read_failure_is_treated_as_miss(profile):
    cache = MagicMock()
    cache.get = AsyncMock(side_effect=CacheError("locked"))
    cache.put = AsyncMock(return_value=T0)
    fetcher = AsyncMock(return_value=profile)
    pipeline = _pipeline(cache, profile, fetcher=fetcher)

    outcome = await pipeline.run("alice")

    assert outcome.ok
    fetcher.assert_awaited_once()


async def test_concurrent_requests_share_one_fresh_run(profile):
    cache = MemoryCacheStore()
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_fetch(username, credentials):
        started.set()
        await release.wait()
        return profile

    fetcher = AsyncMock(side_effect=slow_fetch)
    pipeline = _pipeline(cache, profile, fetcher=fetcher)

    first = asyncio.create_task(pipeline.run("alice"))
    await started.wait()
    second = asyncio.create_task(pipeline.run("alice"))
    await asyncio.sleep(0)
    release.set()
    one, two = await asyncio.gather(first, second)

    assert fetcher.await_count == 1
    assert one.served_from_cache is False
    assert two.served_from_cache is True


# ── narrative prompts ────────────────────────────────────────────────────────

async def test_temporal_without_posts_skips_llm(profile):
    llm = _llm()
    pipeline = _pipeline(MemoryCacheStore(), profile, llm=llm)
    no_posts = profile.model_copy(update={"posts": None})

    assert await pipeline.narrative("alice", PromptKind.TEMPORAL, no_posts) == NO_POSTS_TEXT
    llm.complete.assert_not_awaited()


async def test_narrative_uses_prompt_params(profile):
    llm = _llm("Plain text report")
    pipeline = _pipeline(MemoryCacheStore(), profile, llm=llm)

    text = await pipeline.narrative("alice", PromptKind.REPORT)

    assert text == "Plain text report"
    assert llm.complete.call_args.kwargs == {"max_tokens": 1000, "temperature": 0.5}


async def test_narrative_failure_is_readable(profile):
    llm = MagicMock()
    llm.complete = AsyncMock(return_value=LLMResponse.failure("TimeoutError", "slow"))
    pipeline = _pipeline(MemoryCacheStore(), profile, llm=llm)

    text = await pipeline.narrative("alice", PromptKind.FORENSIC, profile)

    assert text == "Failed to generate forensic notes: LLM_ERROR: TimeoutError: slow"


async def test_narrative_rejects_comprehensive(profile):
    pipeline = _pipeline(MemoryCacheStore(), profile)
    with pytest.raises(ValueError):
        await pipeline.narrative("alice", PromptKind.COMPREHENSIVE, profile)


async def test_narrative_propagates_fetch_errors(profile):
    fetcher = AsyncMock(side_effect=ProfileNotFoundError("Profile not found: ghost"))
    pipeline = _pipeline(MemoryCacheStore(), profile, fetcher=fetcher)
    with pytest.raises(ProfileNotFoundError):
        await pipeline.narrative("ghost", PromptKind.REPORT)


# ── robustness ───────────────────────────────────────────────────────────────

async def test_locks_are_released_after_runs(profile):
    pipeline = _pipeline(MemoryCacheStore(), profile)
    await pipeline.run("alice")
    await pipeline.run("bob", refresh=True)
    assert pipeline._locks == {}
    assert pipeline._lock_users == {}


async def test_locks_are_released_after_concurrent_runs(profile):
    pipeline = _pipeline(MemoryCacheStore(), profile)
    await asyncio.gather(*(pipeline.run("alice", refresh=True) for _ in range(5)))
    assert pipeline._locks == {}


async def test_locks_are_released_when_fetch_crashes(profile):
    fetcher = AsyncMock(side_effect=RuntimeError("boom"))
    pipeline = _pipeline(MemoryCacheStore(), profile, fetcher=fetcher)
    with pytest.raises(RuntimeError):
        await pipeline.run("alice")
    assert pipeline._locks == {}


async def test_out_of_range_post_timestamp_still_completes(profile):
    odd = profile.model_copy(update={"posts": [Post(id="ms", timestamp=10**14), *profile.posts]})
    cache = MemoryCacheStore()
    pipeline = _pipeline(cache, odd)

    outcome = await pipeline.run("alice")

    assert outcome.ok
    assert "alice" in cache
    assert await pipeline.narrative("alice", PromptKind.TEMPORAL, odd) == LLM_JSON
