"""Environment-driven configuration.

Entry points (CLI, API server) call ``load_dotenv()`` first, so every value
below may also come from a local ``.env`` file.
"""
import os
from dataclasses import dataclass

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"

INSTAGRAM_BASE_URL = "https://www.instagram.com"
PROFILE_INFO_URL = f"{INSTAGRAM_BASE_URL}/api/v1/users/web_profile_info/"
INSTAGRAM_APP_ID = "936619743392459"

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/134.0.0.0 Safari/537.36"
)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


@dataclass(frozen=True)
class Settings:
    openai_api_key: str | None = None
    llm_base_url: str = GEMINI_OPENAI_BASE_URL
    llm_model: str = "gemini-2.0-flash"
    llm_max_tokens: int = 6000
    llm_temperature: float = 0.3
    cache_backend: str = "sqlite"
    cache_db_path: str = "insta_lens.db"
    cache_collection: str = "user_data_cache"
    cache_ttl_days: int = 7
    http_timeout: float = 30.0
    browser_timeout_ms: int = 30_000
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build Settings from the current process environment."""
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        llm_base_url=os.getenv("LLM_BASE_URL", GEMINI_OPENAI_BASE_URL),
        llm_model=os.getenv("LLM_MODEL", "gemini-2.0-flash"),
        llm_max_tokens=_env_int("LLM_MAX_TOKENS", 6000),
        llm_temperature=_env_float("LLM_TEMPERATURE", 0.3),
        cache_backend=os.getenv("CACHE_BACKEND", "sqlite").lower(),
        cache_db_path=os.getenv("CACHE_DB_PATH", "insta_lens.db"),
        cache_collection=os.getenv("CACHE_COLLECTION", "user_data_cache"),
        cache_ttl_days=_env_int("CACHE_TTL_DAYS", 7),
        http_timeout=_env_float("HTTP_TIMEOUT", 30.0),
        browser_timeout_ms=_env_int("BROWSER_TIMEOUT_MS", 30_000),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
