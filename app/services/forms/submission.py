from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx
from fastapi import HTTPException, status

from app.config import Settings, get_settings
from app.schemas.forms import EntryMap
from app.services.forms.normalizer import build_submit_url, extract_form_token, normalize_form_url

logger = logging.getLogger(__name__)


class FormSubmitter:
    """Posts answers straight to a form's formResponse endpoint.

    Google does not let us read the response in any useful way, so anything
    short of a transport error counts as delivered.
    """

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.settings = settings or get_settings()
        self.transport = transport

    def build_fields(self, entry_map: EntryMap, user_id: str, message: Optional[str]) -> Dict[str, str]:
        fields = {entry_map.identity_field: user_id}
        if message and entry_map.message_field:
            fields[entry_map.message_field] = message
        return fields

    async def submit(self, form_url: str, entry_map: EntryMap, user_id: str, message: Optional[str] = None) -> bool:
        normalized = normalize_form_url(form_url)
        token = extract_form_token(normalized)
        if not token:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Google Form URL format")

        submit_url = build_submit_url(normalized, token)
        # multipart, like a browser FormData post
        files = {key: (None, value) for key, value in self.build_fields(entry_map, user_id, message).items()}
        async with httpx.AsyncClient(
            transport=self.transport,
            follow_redirects=True,
            timeout=httpx.Timeout(self.settings.fetch_timeout_seconds),
        ) as client:
            try:
                resp = await client.post(submit_url, files=files)
            except httpx.HTTPError as exc:
                logger.error("Form submission to %s failed: %s", submit_url, exc)
                raise HTTPException(
                    status_code=status.HTTP_502_BAD_GATEWAY,
                    detail="フォーム送信に失敗しました。URLを確認してください。",
                ) from exc

        logger.info("Submitted %s to %s (HTTP %s)", entry_map.identity_field, submit_url, resp.status_code)
        return True
