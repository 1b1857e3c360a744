from __future__ import annotations

import logging
import uuid
from typing import Callable, Optional, Protocol

import httpx
from fastapi import HTTPException, status

from app.config import Settings, get_settings
from app.schemas.line import LineProfile

logger = logging.getLogger(__name__)

PROFILE_ENDPOINT = "https://api.line.me/v2/profile"
MOCK_PICTURE_URL = (
    "https://images.unsplash.com/photo-1472099645785-5658abf4ff4e"
    "?ixlib=rb-4.0.3&auto=format&fit=crop&w=400&h=400"
)


class LoginProvider(Protocol):
    async def init(self) -> bool:
        ...

    async def login(self, access_token: Optional[str] = None) -> LineProfile:
        ...

    def logout(self) -> None:
        ...

    def is_logged_in(self) -> bool:
        ...

    async def get_profile(self) -> Optional[LineProfile]:
        ...


class LiffLoginProvider:
    """Resolves a LIFF access token to the LINE profile it belongs to."""

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.settings = settings or get_settings()
        self.transport = transport
        self._profile: Optional[LineProfile] = None
        self._initialized = False

    async def init(self) -> bool:
        self._initialized = True
        return True

    async def login(self, access_token: Optional[str] = None) -> LineProfile:
        if not self._initialized:
            raise RuntimeError("LIFF is not initialized")
        if self._profile is not None and not access_token:
            return self._profile
        if not access_token:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="LINE login required")

        async with httpx.AsyncClient(
            transport=self.transport,
            timeout=httpx.Timeout(self.settings.fetch_timeout_seconds),
        ) as client:
            try:
                resp = await client.get(PROFILE_ENDPOINT, headers={"Authorization": f"Bearer {access_token}"})
            except httpx.HTTPError as exc:
                logger.error("LINE profile lookup failed: %s", exc)
                raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="LINE login failed") from exc

        if resp.status_code in (400, 401):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid LINE access token")
        if not resp.is_success:
            logger.error("LINE profile lookup returned HTTP %s", resp.status_code)
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="LINE login failed")

        self._profile = LineProfile.model_validate(resp.json())
        return self._profile

    def logout(self) -> None:
        self._profile = None

    def is_logged_in(self) -> bool:
        return self._profile is not None

    async def get_profile(self) -> Optional[LineProfile]:
        return self._profile


class MockLoginProvider:
    """Development stand-in used when no LIFF id is configured."""

    def __init__(self, display_name: str = "デモユーザー") -> None:
        self.display_name = display_name
        self._profile: Optional[LineProfile] = None

    async def init(self) -> bool:
        logger.warning("LIFF ID is not configured. Running in development mock mode.")
        return True

    async def login(self, access_token: Optional[str] = None) -> LineProfile:
        if self._profile is None:
            self._profile = LineProfile(
                user_id=f"U{uuid.uuid4().hex}",
                display_name=self.display_name,
                picture_url=MOCK_PICTURE_URL,
            )
        return self._profile

    def logout(self) -> None:
        self._profile = None

    def is_logged_in(self) -> bool:
        return self._profile is not None

    async def get_profile(self) -> Optional[LineProfile]:
        return self._profile


LoginProviderFactory = Callable[[], LoginProvider]


def default_login_factory(settings: Optional[Settings] = None) -> LoginProviderFactory:
    settings = settings or get_settings()
    if settings.liff_id:
        return lambda: LiffLoginProvider(settings)
    return MockLoginProvider
