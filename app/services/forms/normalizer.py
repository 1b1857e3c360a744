"""Canonicalizes user-supplied Google Form links.

Every function here is total: odd input comes back as a best-effort string
(or ``None`` for the token), never as an exception.
"""
from __future__ import annotations

import re
from typing import Optional
from urllib.parse import unquote

from app.schemas.forms import FormReference

FORMS_BASE = "https://docs.google.com/forms"

TOKEN_RE = re.compile(r"(1FAIpQL[0-9A-Za-z_-]+)")
SHORT_LINK_RE = re.compile(r"forms\.gle/([a-zA-Z0-9_-]+)")
LONG_E_RE = re.compile(r"forms/d/e/([a-zA-Z0-9_-]+)")
LONG_RE = re.compile(r"forms/d/([a-zA-Z0-9_-]+)")
VIEW_URL_RE = re.compile(r"^https?://docs\.google\.com/forms/d/(?:e/)?[a-zA-Z0-9_-]+/viewform")


def _decode(url: str) -> str:
    try:
        return unquote(url, errors="strict").strip()
    except (UnicodeDecodeError, TypeError, AttributeError):
        return (url or "").strip() if isinstance(url, str) else ""


def _uses_e_shape(url: str) -> bool:
    # /d/e/ wins; a bare /d/ only when no /d/e/ is present.
    if "/forms/d/e/" in url:
        return True
    if "/forms/d/" in url:
        return False
    return True


def normalize_form_url(raw_url: str) -> str:
    url = _decode(raw_url)
    if not url:
        return url

    token = TOKEN_RE.search(url)
    if token:
        shape = "d/e" if _uses_e_shape(url) else "d"
        return f"{FORMS_BASE}/{shape}/{token.group(1)}/viewform"

    if SHORT_LINK_RE.search(url):
        # resolved by whoever follows the redirect
        return url

    view = VIEW_URL_RE.match(url)
    if view:
        return view.group(0)

    return url


def extract_form_token(url: str) -> Optional[str]:
    normalized = normalize_form_url(url)
    if not normalized:
        return None
    for pattern in (TOKEN_RE, LONG_E_RE, LONG_RE, SHORT_LINK_RE):
        match = pattern.search(normalized)
        if match:
            return match.group(1)
    return None


def normalize(raw_url: str) -> FormReference:
    normalized = normalize_form_url(raw_url)
    return FormReference(
        raw_url=raw_url,
        normalized_view_url=normalized,
        form_token=extract_form_token(normalized),
    )


def build_view_url(url: str, form_token: str) -> str:
    shape = "d/e" if _uses_e_shape(url) else "d"
    return f"{FORMS_BASE}/{shape}/{form_token}/viewform"


def build_submit_url(url: str, form_token: str) -> str:
    shape = "d/e" if _uses_e_shape(url) else "d"
    return f"{FORMS_BASE}/{shape}/{form_token}/formResponse"


def is_valid_form_url(url: str) -> bool:
    return extract_form_token(url) is not None


def strip_query(url: str) -> str:
    return url.split("#", 1)[0].split("?", 1)[0]
