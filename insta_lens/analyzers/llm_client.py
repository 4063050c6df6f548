"""OpenAI-compatible chat completion client.

Failures are returned as values, never raised: callers branch on
``LLMResponse.ok``. The legacy ``LLM_ERROR: <kind>: <message>`` string is
still available through ``LLMResponse.sentinel`` for plain-text consumers.
"""
import logging
import re

from openai import AsyncOpenAI
from pydantic import BaseModel

from insta_lens.config import Settings, load_settings
from insta_lens.utils import llm_call_with_retry

_log = logging.getLogger(__name__)

SENTINEL_PREFIX = "LLM_ERROR"

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


class LLMResponse(BaseModel):
    text: str = ""
    model: str = ""
    error_kind: str | None = None
    error_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @property
    def sentinel(self) -> str:
        return f"{SENTINEL_PREFIX}: {self.error_kind}: {self.error_message}"

    @classmethod
    def failure(cls, kind: str, message: str, *, model: str = "") -> "LLMResponse":
        return cls(model=model, error_kind=kind, error_message=message)


def strip_code_fence(text: str) -> str:
    """Remove a wrapping ```json ... ``` or ``` ... ``` fence and trim whitespace.

    Text that is not fenced is returned trimmed but otherwise unchanged.
    """
    stripped = text.strip()
    match = _FENCE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


class LLMClient:
    """Single request/response completion against an injected AsyncOpenAI client."""

    def __init__(self, client: AsyncOpenAI | None = None, settings: Settings | None = None) -> None:
        self.settings = settings or load_settings()
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        # Created on first use so a missing API key fails at call time, not import.
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.openai_api_key,
                base_url=self.settings.llm_base_url,
            )
        return self._client

    async def complete(
        self,
        prompt: str,
        *,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        model = model or self.settings.llm_model
        try:
            response = await llm_call_with_retry(
                self.client.chat.completions.create,
                model=model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens if max_tokens is not None else self.settings.llm_max_tokens,
                temperature=temperature if temperature is not None else self.settings.llm_temperature,
            )
            content = response.choices[0].message.content
        except Exception as exc:
            _log.error("LLM call failed (model=%s): %s: %s", model, type(exc).__name__, exc)
            return LLMResponse.failure(type(exc).__name__, str(exc), model=model)

        if not content or not content.strip():
            _log.error("LLM returned an empty completion (model=%s)", model)
            return LLMResponse.failure("EmptyResponse", "No response from LLM", model=model)

        _log.info("LLM call succeeded (model=%s, %d chars)", model, len(content))
        return LLMResponse(text=strip_code_fence(content), model=model)
