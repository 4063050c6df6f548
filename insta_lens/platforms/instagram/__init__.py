from insta_lens.platforms.instagram.fetcher import build_headers, fetch_image, fetch_profile
from insta_lens.platforms.instagram.parser import parse_profile
from insta_lens.platforms.instagram.session import SessionCredentials, acquire_session, merge_session

__all__ = [
    "SessionCredentials",
    "acquire_session",
    "build_headers",
    "fetch_image",
    "fetch_profile",
    "merge_session",
    "parse_profile",
]
