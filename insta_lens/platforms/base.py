"""Platform protocols: the pipeline depends on these, not on Instagram directly."""
from typing import Protocol

from insta_lens.models import Profile
from insta_lens.platforms.instagram.session import SessionCredentials


class SessionProvider(Protocol):
    """Produces credentials for the private profile API. Raises SessionError."""

    async def __call__(self) -> SessionCredentials: ...


class ProfileFetcher(Protocol):
    """Fetches and normalises one profile. Raises a FetchError subclass."""

    async def __call__(self, username: str, credentials: SessionCredentials) -> Profile: ...
