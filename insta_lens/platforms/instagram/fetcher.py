import logging

import httpx

from insta_lens.config import (
    INSTAGRAM_APP_ID,
    INSTAGRAM_BASE_URL,
    PROFILE_INFO_URL,
    USER_AGENT,
    Settings,
    load_settings,
)
from insta_lens.errors import (
    MalformedResponseError,
    NetworkError,
    ProfileNotFoundError,
    RateLimitedError,
    UnauthorizedError,
)
from insta_lens.models import Profile
from insta_lens.platforms.instagram.parser import parse_profile
from insta_lens.platforms.instagram.session import SessionCredentials

_log = logging.getLogger(__name__)


def build_headers(username: str, credentials: SessionCredentials) -> dict[str, str]:
    """Browser-like headers for the private profile endpoint.

    ``x-ig-user-id`` is only sent when the session carries ``ds_user_id``.
    """
    headers = {
        "accept": "*/*",
        "accept-language": "en-US,en;q=0.9",
        "referer": f"{INSTAGRAM_BASE_URL}/{username}/",
        "sec-ch-prefers-color-scheme": "dark",
        "sec-ch-ua": '"Chromium";v="134", "Not:A-Brand";v="24", "Google Chrome";v="134"',
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"macOS"',
        "sec-fetch-dest": "empty",
        "sec-fetch-mode": "cors",
        "sec-fetch-site": "same-origin",
        "user-agent": USER_AGENT,
        "x-csrftoken": credentials.csrf_token or "",
        "x-ig-app-id": INSTAGRAM_APP_ID,
        "x-requested-with": "XMLHttpRequest",
    }
    if credentials.user_id:
        headers["x-ig-user-id"] = credentials.user_id
    return headers


def cookie_header(credentials: SessionCredentials) -> str:
    return "; ".join(f"{name}={value}" for name, value in credentials.cookies.items())


def _raise_for_status(username: str, response: httpx.Response) -> None:
    status = response.status_code
    if status == 404:
        raise ProfileNotFoundError(f"Profile not found: {username}", status_code=status)
    if status in (401, 403):
        raise UnauthorizedError(
            f"Unauthorized or forbidden ({status}) - session cookies rejected", status_code=status
        )
    if status == 429:
        raise RateLimitedError("Rate limited by Instagram - wait before trying again", status_code=status)
    if not response.is_success:
        raise MalformedResponseError(f"Unexpected HTTP {status} for {username}", status_code=status)


async def fetch_profile(
    username: str,
    credentials: SessionCredentials,
    *,
    client: httpx.AsyncClient | None = None,
    settings: Settings | None = None,
) -> Profile:
    """Fetch one profile from ``web_profile_info`` and normalise it.

    Pass ``client`` to reuse a connection pool (or a MockTransport in tests);
    otherwise a short-lived client is opened for this call.

    Raises ProfileNotFoundError, UnauthorizedError, RateLimitedError,
    MalformedResponseError or NetworkError.
    """
    settings = settings or load_settings()
    _log.info("fetching profile info for %s", username)

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=settings.http_timeout)
    try:
        response = await client.get(
            PROFILE_INFO_URL,
            params={"username": username},
            headers={**build_headers(username, credentials), "cookie": cookie_header(credentials)},
        )
    except httpx.TransportError as exc:
        _log.warning("network error fetching %s: %s", username, exc)
        raise NetworkError(f"Network error: {exc}") from exc
    finally:
        if owns_client:
            await client.aclose()

    _raise_for_status(username, response)

    try:
        payload = response.json()
    except ValueError as exc:
        raise MalformedResponseError(f"Response for {username} is not JSON") from exc

    profile = parse_profile(username, payload)
    _log.info(
        "fetched %s (user id %s, %d posts)",
        username, profile.user_id, len(profile.posts or []),
    )
    return profile


async def fetch_image(url: str, *, client: httpx.AsyncClient | None = None, timeout: float = 30.0) -> tuple[bytes, str]:
    """Plain pass-through fetch used by the image proxy. Returns (body, content type)."""
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)
    try:
        response = await client.get(url)
    finally:
        if owns_client:
            await client.aclose()
    return response.content, response.headers.get("content-type", "image/jpeg")
