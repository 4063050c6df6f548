"""Exception hierarchy for insta-lens.

Session and fetch failures are fatal for a single analysis request. LLM and
JSON-parsing failures are never raised; they are folded into the
AnalysisResult by ``insta_lens.analyzers.response_parser``.
"""


class InstaLensError(Exception):
    """Base exception for insta-lens."""


class SessionError(InstaLensError):
    """Headless browser could not produce a usable Instagram session."""

    kind = "SessionError"


class FetchError(InstaLensError):
    """Profile info request failed."""

    kind = "FetchError"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProfileNotFoundError(FetchError):
    kind = "NotFound"


class UnauthorizedError(FetchError):
    """401/403: the session cookies are stale or were rejected."""

    kind = "Unauthorized"


class RateLimitedError(FetchError):
    kind = "RateLimited"


class MalformedResponseError(FetchError):
    """The response did not contain the expected ``data.user`` object."""

    kind = "MalformedResponse"


class NetworkError(FetchError):
    kind = "NetworkError"


class CacheError(InstaLensError):
    """Cache store could not be read or written."""

    kind = "CacheError"
