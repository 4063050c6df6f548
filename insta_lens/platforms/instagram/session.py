"""Anonymous Instagram session via headless Chromium.

The private profile endpoint only answers requests that carry the cookies
(and anti-forgery token) a real browser picks up on the landing page.
"""
import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright
from pydantic import BaseModel, ConfigDict

from insta_lens.config import INSTAGRAM_BASE_URL, Settings, load_settings
from insta_lens.errors import SessionError

_log = logging.getLogger(__name__)

BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]
LOCAL_STORAGE_SESSION_KEY = "Session"


class SessionCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    cookies: dict[str, str]

    @property
    def csrf_token(self) -> str | None:
        return self.cookies.get("csrftoken")

    @property
    def user_id(self) -> str | None:
        return self.cookies.get("ds_user_id")


def merge_session(cookies: list[dict], local_session: str | None) -> SessionCredentials:
    """Flatten Playwright cookie dicts into name -> value and add the localStorage session."""
    merged = {c["name"]: c["value"] for c in cookies if c.get("name")}
    if local_session:
        merged["sessionid"] = local_session
    if not merged.get("csrftoken"):
        raise SessionError("Browser session has no csrftoken cookie")
    return SessionCredentials(cookies=merged)


async def acquire_session(settings: Settings | None = None) -> SessionCredentials:
    """Load the Instagram landing page headlessly and collect its session state.

    Raises SessionError on launch failure, navigation failure or when the page
    never reaches network idle within ``settings.browser_timeout_ms``.
    """
    settings = settings or load_settings()
    timeout = settings.browser_timeout_ms

    try:
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=True, args=BROWSER_ARGS, timeout=timeout)
            try:
                context = await browser.new_context()
                page = await context.new_page()
                await page.goto(f"{INSTAGRAM_BASE_URL}/", wait_until="networkidle", timeout=timeout)
                local_session = await page.evaluate(
                    "key => window.localStorage.getItem(key)", LOCAL_STORAGE_SESSION_KEY
                )
                # Late-set cookies land after the first idle period.
                await page.wait_for_load_state("networkidle", timeout=timeout)
                cookies = await context.cookies()
            finally:
                await browser.close()
    except PlaywrightError as exc:
        _log.error("session acquisition failed: %s", exc)
        raise SessionError(f"Browser session failed: {exc}") from exc

    credentials = merge_session(cookies, local_session)
    _log.info("acquired session with %d cookies", len(credentials.cookies))
    return credentials
