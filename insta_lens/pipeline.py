"""Scrape -> cache -> enrich pipeline.

Per request:
  CacheCheck --hit--> done (served_from_cache=True)
             --miss-> session + fetch --error--> done (error, no cache write)
                                      --ok--> prompt -> LLM -> parse -> cache put -> done

All collaborators are injected so the API server, the CLI and the tests can
each wire their own.
"""
import asyncio
import logging
from datetime import datetime, timezone
from contextlib import asynccontextmanager
from functools import partial
from typing import AsyncIterator, Callable

from insta_lens.analyzers.llm_client import LLMClient
from insta_lens.analyzers.prompts import NO_POSTS_TEXT, PROMPT_PARAMS, PromptKind, build_prompt
from insta_lens.analyzers.response_parser import narrative_text, parse_profile_analysis
from insta_lens.api.cache_store import CacheStore, make_cache_store
from insta_lens.config import Settings, load_settings
from insta_lens.errors import CacheError, FetchError, SessionError
from insta_lens.models import AnalysisOutcome, Profile
from insta_lens.platforms.base import ProfileFetcher, SessionProvider
from insta_lens.platforms.instagram import acquire_session, fetch_profile

_log = logging.getLogger(__name__)

NARRATIVE_LABELS = {
    PromptKind.REPORT: "report",
    PromptKind.FORENSIC: "forensic notes",
    PromptKind.AUTHENTICITY: "profile analysis",
    PromptKind.TEMPORAL: "temporal analysis",
}


def normalise_username(username: str) -> str:
    return username.strip().lstrip("@").lower()


class AnalysisPipeline:
    def __init__(
        self,
        cache: CacheStore,
        llm: LLMClient,
        *,
        session_provider: SessionProvider,
        profile_fetcher: ProfileFetcher,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.cache = cache
        self.llm = llm
        self.session_provider = session_provider
        self.profile_fetcher = profile_fetcher
        self.settings = settings or load_settings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        # Single-flight: one fresh run per username at a time in this process.
        # A lock lives only while some request holds or waits on it.
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "AnalysisPipeline":
        """Production wiring: Playwright session, httpx fetch, OpenAI client, configured cache."""
        settings = settings or load_settings()
        return cls(
            make_cache_store(settings),
            LLMClient(settings=settings),
            session_provider=partial(acquire_session, settings),
            profile_fetcher=partial(fetch_profile, settings=settings),
            settings=settings,
        )

    @asynccontextmanager
    async def _single_flight(self, username: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(username, asyncio.Lock())
        self._lock_users[username] = self._lock_users.get(username, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[username] -= 1
            if not self._lock_users[username]:
                del self._lock_users[username]
                del self._locks[username]

    async def fetch(self, username: str) -> Profile:
        """Acquire a session and fetch the profile. Raises SessionError or FetchError."""
        credentials = await self.session_provider()
        return await self.profile_fetcher(username, credentials)

    async def _cached(self, username: str, refresh: bool) -> AnalysisOutcome | None:
        try:
            entry = await self.cache.get(username, bypass=refresh)
        except CacheError as exc:
            _log.warning("cache read failed, treating as miss: %s", exc)
            return None
        if entry is None:
            return None
        return AnalysisOutcome(
            username=username,
            profile=entry.data,
            analysis=entry.report,
            served_from_cache=True,
            cached_at=entry.timestamp,
        )

    async def run(self, username: str, refresh: bool = False) -> AnalysisOutcome:
        """Return the analysis for ``username``, from cache unless stale or ``refresh``."""
        username = normalise_username(username)

        hit = await self._cached(username, refresh)
        if hit is not None:
            return hit

        async with self._single_flight(username):
            # Another request may have filled the cache while we waited.
            if not refresh:
                hit = await self._cached(username, refresh=False)
                if hit is not None:
                    return hit
            return await self._run_fresh(username)

    async def _run_fresh(self, username: str) -> AnalysisOutcome:
        try:
            profile = await self.fetch(username)
        except (SessionError, FetchError) as exc:
            _log.error("fetch failed for %s: %s", username, exc)
            return AnalysisOutcome(username=username, error=str(exc), error_kind=exc.kind)

        model = self.settings.llm_model
        timestamp = self._clock()
        prompt = build_prompt(
            PromptKind.COMPREHENSIVE, profile, profile.posts, model=model, timestamp=timestamp
        )
        response = await self.llm.complete(
            prompt,
            model=model,
            max_tokens=self.settings.llm_max_tokens,
            temperature=self.settings.llm_temperature,
        )
        analysis = parse_profile_analysis(response, profile, model=model, timestamp=timestamp)

        cached_at = None
        try:
            cached_at = await self.cache.put(username, profile, analysis)
        except CacheError as exc:
            _log.error("cache write failed for %s, returning fresh result anyway: %s", username, exc)

        return AnalysisOutcome(
            username=username,
            profile=profile,
            analysis=analysis,
            served_from_cache=False,
            cached_at=cached_at,
        )

    async def narrative(self, username: str, kind: PromptKind, profile: Profile | None = None) -> str:
        """Run one plain-text prompt against a freshly fetched (or given) profile.

        Raises SessionError or FetchError when the profile has to be fetched and
        cannot be.
        """
        kind = PromptKind(kind)
        if kind not in NARRATIVE_LABELS:
            raise ValueError(f"{kind.value} is not a narrative prompt")

        profile = profile or await self.fetch(normalise_username(username))
        if kind is PromptKind.TEMPORAL and not profile.posts:
            return NO_POSTS_TEXT

        max_tokens, temperature = PROMPT_PARAMS[kind]
        prompt = build_prompt(kind, profile, profile.posts)
        response = await self.llm.complete(prompt, max_tokens=max_tokens, temperature=temperature)
        return narrative_text(response, NARRATIVE_LABELS[kind])
