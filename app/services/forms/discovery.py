from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union
from urllib.parse import quote

import httpx
from bs4 import BeautifulSoup

from app.config import DEFAULT_USER_AGENT, Settings, get_settings
from app.schemas.forms import DiscoveryFailure, EntryMap, InspectResponse
from app.services.forms.normalizer import build_view_url, extract_form_token

logger = logging.getLogger(__name__)

TITLE_SUFFIX_RE = re.compile(r"\s*-\s*Google\s*(?:フォーム|Forms)\s*$", re.IGNORECASE)

# (pattern, group holding the digits)
ENTRY_PATTERNS = [
    (re.compile(r'name="entry\.(\d+)"'), 1),
    (re.compile(r'"entry\.(\d+)"'), 1),
    (re.compile(r"'entry\.(\d+)'"), 1),
    (re.compile(r"entry\.(\d+)"), 1),
    (re.compile(r"entry_(\d+)"), 1),
    # FB_PUBLIC_LOAD_DATA_: [questionId,"label",null,type,[[entryId,null,1...
    (re.compile(r"\[(\d{8,}),[^,]*?,null,.*?\[(\d{8,}),null,1\]"), 2),
]

DiscoveryResult = Union[EntryMap, DiscoveryFailure]


@dataclass
class PageMetadata:
    title: Optional[str]
    description: Optional[str]


def extract_metadata(html: str, default_description: Optional[str] = None) -> PageMetadata:
    soup = BeautifulSoup(html or "", "html.parser")

    title: Optional[str] = None
    if soup.title and soup.title.string:
        title = TITLE_SUFFIX_RE.sub("", soup.title.string).strip() or None
    if not title:
        header = soup.find(class_="freebirdFormviewerViewHeaderTitle")
        if header:
            title = header.get_text(" ", strip=True) or None

    description: Optional[str] = None
    for attrs in ({"itemprop": "description"}, {"name": "description"}, {"property": "og:description"}):
        tag = soup.find("meta", attrs=attrs)
        content = (tag.get("content") or "").strip() if tag else ""
        if content:
            description = content
            break

    return PageMetadata(title=title, description=description or default_description)


def extract_entry_ids(html: str, min_digits: int = 8) -> List[str]:
    # dict keeps first-insertion order
    found: Dict[str, None] = {}
    for pattern, group in ENTRY_PATTERNS:
        for match in pattern.finditer(html or ""):
            digits = match.group(group)
            if digits and len(digits) >= min_digits:
                found.setdefault(f"entry.{digits}", None)
    return list(found)


def parse_form_html(html: str, settings: Optional[Settings] = None) -> DiscoveryResult:
    settings = settings or get_settings()
    entries = extract_entry_ids(html, settings.min_entry_digits)
    if not entries:
        return DiscoveryFailure(reason="no-entries")
    meta = extract_metadata(html, settings.preview_default_description)
    return EntryMap(
        identity_field=entries[0],
        message_field=entries[1] if len(entries) > 1 else None,
        title=meta.title,
        description=meta.description,
    )


@dataclass
class FetchSource:
    """One way of getting the form page past cross-origin restrictions."""

    name: str
    build_url: Callable[[str], str]
    json_key: Optional[str] = None
    # first-party inspection returns already-parsed entries instead of html
    structured: bool = False


def default_sources(settings: Settings) -> List[FetchSource]:
    sources: List[FetchSource] = []
    if settings.inspect_endpoint_url:
        endpoint = settings.inspect_endpoint_url
        sources.append(
            FetchSource(
                name="inspect",
                build_url=lambda url: f"{endpoint}?form={quote(url, safe='')}",
                structured=True,
            )
        )
    sources.extend(
        [
            FetchSource(name="direct", build_url=lambda url: url),
            FetchSource(
                name="allorigins",
                build_url=lambda url: f"https://api.allorigins.win/get?url={quote(url, safe='')}",
                json_key="contents",
            ),
            FetchSource(name="corsproxy", build_url=lambda url: f"https://corsproxy.io/?{quote(url, safe='')}"),
            FetchSource(name="thingproxy", build_url=lambda url: f"https://thingproxy.freeboard.io/fetch/{url}"),
        ]
    )
    return sources


class FormDiscoverer:
    """Fetches a form's view page and pulls out its entry ids and metadata."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        sources: Optional[List[FetchSource]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.sources = sources if sources is not None else default_sources(self.settings)
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self.transport,
            follow_redirects=True,
            timeout=httpx.Timeout(self.settings.fetch_timeout_seconds),
            headers={"User-Agent": DEFAULT_USER_AGENT},
        )

    async def _try_source(self, client: httpx.AsyncClient, source: FetchSource, view_url: str) -> Optional[DiscoveryResult]:
        resp = await client.get(source.build_url(view_url))
        if not resp.is_success:
            logger.debug("%s returned HTTP %s for %s", source.name, resp.status_code, view_url)
            return None

        if source.structured:
            payload = InspectResponse.model_validate(resp.json())
            if not payload.success or not payload.entries:
                return None
            return EntryMap(
                identity_field=payload.entries[0],
                message_field=payload.entries[1] if len(payload.entries) > 1 else None,
                title=payload.title,
                description=payload.description or self.settings.preview_default_description,
            )

        if source.json_key:
            data = resp.json()
            html = data.get(source.json_key) if isinstance(data, dict) else None
        else:
            html = resp.text
        if not isinstance(html, str) or not html:
            return None
        return parse_form_html(html, self.settings)

    async def fetch_html(self, url: str) -> Optional[str]:
        """Plain fetch used by the first-party inspection endpoint."""
        async with self._client() as client:
            try:
                resp = await client.get(url)
            except httpx.HTTPError as exc:
                logger.warning("Fetch failed for %s: %s", url, exc)
                return None
        if not resp.is_success:
            logger.warning("Fetch for %s returned HTTP %s", url, resp.status_code)
            return None
        return resp.text or None

    async def discover(self, normalized_view_url: str) -> DiscoveryResult:
        token = extract_form_token(normalized_view_url)
        if not token:
            return DiscoveryFailure(reason="no-token", detail=normalized_view_url)
        view_url = build_view_url(normalized_view_url, token)

        no_entries: Optional[DiscoveryFailure] = None
        async with self._client() as client:
            for source in self.sources:
                try:
                    result = await self._try_source(client, source, view_url)
                except (httpx.HTTPError, ValueError) as exc:
                    logger.warning("%s failed for %s: %s", source.name, view_url, exc)
                    continue
                if result is None:
                    continue
                if isinstance(result, DiscoveryFailure):
                    # html arrived but had no ids; the page will look the same elsewhere
                    no_entries = result
                    break
                logger.info("Discovered %s via %s", result.identity_field, source.name)
                return result

        if no_entries is not None:
            return no_entries
        return DiscoveryFailure(reason="no-html", detail=view_url)
