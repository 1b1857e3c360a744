"""Link-preview content negotiation.

Chat apps fetch a shared link to render a card, then open the same link in an
in-app WebView when the user taps it. The two requests look alike, so the
user agent decides what comes back:

* crawlers get an Open Graph page and no redirect,
* in-app WebViews get an HTML page that navigates itself (some ignore 302s),
* everything else gets a plain 302.

This is a best-effort heuristic, not an access control.
"""
from __future__ import annotations

import html
import json
import logging
import re
from collections import OrderedDict
from dataclasses import dataclass
from typing import List, Optional, Tuple
from urllib.parse import quote

from fastapi.responses import HTMLResponse, RedirectResponse, Response

from app.config import Settings, get_settings
from app.schemas.forms import AgentClassification, EntryMap
from app.services.forms.discovery import FormDiscoverer
from app.services.forms.normalizer import normalize_form_url

logger = logging.getLogger(__name__)

BODY_STYLE = "font-family:system-ui,-apple-system,Segoe UI,Roboto,Helvetica,Arial,sans-serif;"


def _compile(patterns: List[str]) -> Optional[re.Pattern]:
    if not patterns:
        return None
    return re.compile("(" + "|".join(patterns) + ")", re.IGNORECASE)


class UserAgentClassifier:
    def __init__(self, crawler_patterns: List[str], in_app_patterns: List[str]) -> None:
        self.crawler_re = _compile(crawler_patterns)
        self.in_app_re = _compile(in_app_patterns)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "UserAgentClassifier":
        settings = settings or get_settings()
        return cls(settings.crawler_ua_patterns, settings.in_app_ua_patterns)

    def is_crawler(self, user_agent: Optional[str]) -> bool:
        return bool(user_agent and self.crawler_re and self.crawler_re.search(user_agent))

    def is_in_app_human(self, user_agent: Optional[str]) -> bool:
        return bool(user_agent and self.in_app_re and self.in_app_re.search(user_agent))

    def classify(self, user_agent: Optional[str]) -> AgentClassification:
        if self.is_crawler(user_agent):
            return AgentClassification.CRAWLER
        if self.is_in_app_human(user_agent):
            return AgentClassification.IN_APP_HUMAN
        return AgentClassification.PLAIN_BROWSER


def classify(user_agent: Optional[str], settings: Optional[Settings] = None) -> AgentClassification:
    return UserAgentClassifier.from_settings(settings).classify(user_agent)


@dataclass
class PreviewContext:
    app_url: str
    title: str
    description: str
    image: str


class PreviewMetadataResolver:
    """Fills in title/description for crawler previews when the link omits them."""

    def __init__(self, discoverer: FormDiscoverer, settings: Optional[Settings] = None, max_entries: int = 256) -> None:
        self.discoverer = discoverer
        self.settings = settings or get_settings()
        self.max_entries = max_entries
        self.cache: OrderedDict[str, EntryMap] = OrderedDict()

    async def resolve(self, form: str, title: Optional[str], description: Optional[str]) -> Tuple[str, str]:
        if title and description:
            return title, description
        key = normalize_form_url(form)
        entry_map = self.cache.get(key)
        if entry_map is not None:
            self.cache.move_to_end(key)
        else:
            try:
                result = await self.discoverer.discover(key)
            except Exception:  # noqa: BLE001
                logger.warning("Metadata lookup failed for %s", form, exc_info=True)
                result = None
            if isinstance(result, EntryMap):
                entry_map = self.cache[key] = result
                while len(self.cache) > self.max_entries:
                    self.cache.popitem(last=False)
        derived_title = entry_map.title if entry_map else None
        derived_desc = entry_map.description if entry_map else None
        return (
            title or derived_title or self.settings.preview_default_title,
            description or derived_desc or self.settings.preview_default_description,
        )


def build_app_url(proto: Optional[str], host: Optional[str], form: str, notify: bool) -> str:
    proto = (proto or "https").split(",")[0].strip() or "https"
    return f"{proto}://{host or 'localhost'}/?form={quote(form, safe='')}&redirect=true&notify={'1' if notify else '0'}"


def escape(value: str) -> str:
    return html.escape(value or "", quote=True)


def script_string(value: str) -> str:
    # JSON string literal that cannot close the <script> element
    return json.dumps(value).replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


def render_open_graph(ctx: PreviewContext) -> str:
    return f"""<!doctype html>
<html lang="ja">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width,initial-scale=1">
<meta property="og:title" content="{escape(ctx.title)}"/>
<meta property="og:description" content="{escape(ctx.description)}"/>
<meta property="og:type" content="website"/>
<meta property="og:url" content="{escape(ctx.app_url)}"/>
<meta property="og:image" content="{escape(ctx.image)}"/>
<title>{escape(ctx.title)}</title>
</head>
<body>
<p style="{BODY_STYLE}color:#111;margin:16px;">
  {escape(ctx.description)}
</p>
</body>
</html>"""


def render_in_app_redirect(ctx: PreviewContext) -> str:
    return f"""<!doctype html>
<html lang="ja">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width,initial-scale=1">
<title>開いています…</title>
<meta http-equiv="refresh" content="0;url={escape(ctx.app_url)}">
<script>location.replace({script_string(ctx.app_url)});</script>
</head>
<body style="{BODY_STYLE}">
  <p style="margin:16px;">自動的に開かない場合は <a href="{escape(ctx.app_url)}">こちらをタップ</a> してください。</p>
</body>
</html>"""


def respond(classification: AgentClassification, ctx: PreviewContext) -> Response:
    if classification is AgentClassification.CRAWLER:
        # preview caches are sticky, keep them short
        return HTMLResponse(
            render_open_graph(ctx),
            status_code=200,
            headers={"Cache-Control": "public, max-age=60, s-maxage=60"},
        )
    if classification is AgentClassification.IN_APP_HUMAN:
        return HTMLResponse(
            render_in_app_redirect(ctx),
            status_code=200,
            headers={"Cache-Control": "no-store"},
        )
    return RedirectResponse(ctx.app_url, status_code=302)
