from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)

PUSH_ENDPOINT = "https://api.line.me/v2/bot/message/push"
DEFAULT_CARD_TITLE = "Googleフォーム回答通知"


class LineMessagingError(Exception):
    pass


class LineCredentialsError(LineMessagingError):
    pass


class InvalidLineUserId(LineMessagingError):
    pass


def is_line_user_id(user_id: Optional[str]) -> bool:
    # LINE user ids are "U" + 32 hex chars
    return bool(user_id) and user_id.startswith("U") and len(user_id) >= 30


def text_message(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


def card_message(form_url: str, title: Optional[str], description: Optional[str]) -> Dict[str, Any]:
    title = (title or DEFAULT_CARD_TITLE)[:40]
    description = (description or "リンクを開くにはこちらをタップ")[:60]
    return {
        "type": "template",
        "altText": f"{title}: {form_url}"[:400],
        "template": {
            "type": "buttons",
            "title": title,
            "text": description,
            "actions": [{"type": "uri", "label": "フォームを開く", "uri": form_url}],
        },
    }


class LineMessagingClient:
    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.settings = settings or get_settings()
        self.transport = transport

    def _check_credentials(self) -> None:
        if not self.settings.line_credentials_configured:
            logger.error("LINE API credentials not configured")
            raise LineCredentialsError(
                "LINE API credentials not configured. Please set LINE_CHANNEL_ACCESS_TOKEN "
                "and LINE_CHANNEL_SECRET environment variables."
            )

    async def push_message(self, user_id: str, message: Dict[str, Any]) -> None:
        self._check_credentials()
        if not is_line_user_id(user_id):
            raise InvalidLineUserId(f"Invalid LINE user ID format: {user_id}")

        headers = {"Authorization": f"Bearer {self.settings.line_channel_access_token}"}
        payload = {"to": user_id, "messages": [message]}
        async with httpx.AsyncClient(
            transport=self.transport,
            timeout=httpx.Timeout(self.settings.fetch_timeout_seconds),
        ) as client:
            try:
                resp = await client.post(PUSH_ENDPOINT, json=payload, headers=headers)
            except httpx.HTTPError as exc:
                raise LineMessagingError(f"LINE push failed: {exc}") from exc

        if not resp.is_success:
            logger.error("LINE push to %s returned HTTP %s: %s", user_id, resp.status_code, resp.text)
            raise LineMessagingError(f"LINE push returned HTTP {resp.status_code}")
        logger.info("LINE message sent to %s", user_id)

    async def send_text(self, user_id: str, text: str) -> None:
        await self.push_message(user_id, text_message(text))

    async def send_card(self, user_id: str, form_url: str, title: Optional[str], description: Optional[str]) -> None:
        await self.push_message(user_id, card_message(form_url, title, description))
