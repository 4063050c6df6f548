import asyncio
import logging
from typing import Any, Awaitable, Callable

from openai import RateLimitError

_log = logging.getLogger(__name__)


async def llm_call_with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    max_retries: int = 4,
    base_delay: float = 5.0,
    **kwargs: Any,
) -> Any:
    """Await an OpenAI API coroutine with exponential backoff on RateLimitError.

    Waits 5, 10, 20 seconds between attempts by default.
    """
    for attempt in range(max_retries):
        try:
            return await fn(*args, **kwargs)
        except RateLimitError:
            if attempt == max_retries - 1:
                raise
            wait = base_delay * (2 ** attempt)
            _log.warning("LLM rate limited, retrying in %.0fs (attempt %d)", wait, attempt + 1)
            await asyncio.sleep(wait)
