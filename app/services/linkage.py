from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional, Protocol, Set

from app.config import Settings, get_settings
from app.models.store import LineUserRepository
from app.schemas.forms import DiscoveryFailure, EntryMap, PrefillLink
from app.schemas.line import LineProfile
from app.services.forms.discovery import FormDiscoverer
from app.services.forms.normalizer import normalize
from app.services.forms.prefill import build_prefill_link, resolve_entry_map
from app.services.login import LoginProvider, LoginProviderFactory

logger = logging.getLogger(__name__)


class LatchState(str, Enum):
    IDLE = "idle"
    TRIGGERED = "triggered"
    DONE = "done"


class OneShotLatch:
    """Lets exactly one caller through; everything after is a no-op."""

    def __init__(self) -> None:
        self.state = LatchState.IDLE

    def try_trigger(self) -> bool:
        # no await between the check and the set
        if self.state is not LatchState.IDLE:
            return False
        self.state = LatchState.TRIGGERED
        return True

    def mark_done(self) -> None:
        if self.state is LatchState.TRIGGERED:
            self.state = LatchState.DONE

    def reset(self) -> None:
        self.state = LatchState.IDLE


class Notifier(Protocol):
    async def send_card(self, user_id: str, form_url: str, title: Optional[str], description: Optional[str]) -> None:
        ...


@dataclass
class LinkageSession:
    id: str
    login: LoginProvider
    form_url: Optional[str] = None
    entry_cache: Dict[str, EntryMap] = field(default_factory=dict)
    navigation: OneShotLatch = field(default_factory=OneShotLatch)
    notification: OneShotLatch = field(default_factory=OneShotLatch)

    def activate(self, form_url: str) -> None:
        """A different form link starts the one-shot effects over."""
        if form_url != self.form_url:
            self.form_url = form_url
            self.navigation.reset()
            self.notification.reset()


class SessionRegistry:
    """Server-side sessions keyed by ids this registry issued.

    Unknown ids never become sessions; the least recently used and idle
    sessions are dropped.
    """

    def __init__(
        self,
        login_factory: LoginProviderFactory,
        max_sessions: int = 1000,
        idle_seconds: float = 1800.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.login_factory = login_factory
        self.max_sessions = max_sessions
        self.idle_seconds = idle_seconds
        self.clock = clock
        self.sessions: OrderedDict[str, LinkageSession] = OrderedDict()
        self._last_seen: Dict[str, float] = {}

    def _evict(self, now: float) -> None:
        for sid in list(self.sessions):
            if now - self._last_seen[sid] <= self.idle_seconds:
                break
            self._drop(sid)
        while len(self.sessions) >= self.max_sessions:
            self._drop(next(iter(self.sessions)))

    def _drop(self, session_id: str) -> None:
        self.sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)

    async def get_or_create(self, session_id: Optional[str]) -> LinkageSession:
        now = self.clock()
        session = self.sessions.get(session_id) if session_id else None
        if session is not None and now - self._last_seen[session.id] <= self.idle_seconds:
            self.sessions.move_to_end(session.id)
            self._last_seen[session.id] = now
            return session

        self._evict(now)
        session = LinkageSession(id=uuid.uuid4().hex, login=self.login_factory())
        await session.login.init()
        self.sessions[session.id] = session
        self._last_seen[session.id] = now
        return session


@dataclass
class LinkageResult:
    link: PrefillLink
    entry_map: EntryMap
    profile: LineProfile
    navigate: bool
    notified: bool


class LinkageOrchestrator:
    """Login -> normalize -> discover (cached) -> build, plus the optional push."""

    def __init__(
        self,
        discoverer: FormDiscoverer,
        notifier: Optional[Notifier],
        repository: Optional[LineUserRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.discoverer = discoverer
        self.notifier = notifier
        self.repository = repository
        self.settings = settings or get_settings()
        self._tasks: Set[asyncio.Task] = set()

    async def entry_map_for(self, session: LinkageSession, raw_url: str) -> EntryMap:
        cached = session.entry_cache.get(raw_url)
        if cached is not None:
            return cached
        reference = normalize(raw_url)
        try:
            result = await self.discoverer.discover(reference.normalized_view_url)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Entry discovery crashed for %s", reference.normalized_view_url)
            result = DiscoveryFailure(reason="no-html", detail=str(exc))
        entry_map = resolve_entry_map(result, self.settings.fallback_entry_id)
        if not entry_map.used_fallback:
            session.entry_cache[raw_url] = entry_map
        return entry_map

    async def _link_for(
        self, profile: LineProfile, session: LinkageSession, raw_url: Optional[str]
    ) -> tuple[PrefillLink, EntryMap]:
        raw_url = raw_url or session.form_url
        if not raw_url:
            raise ValueError("no form url for this session")
        reference = normalize(raw_url)
        entry_map = await self.entry_map_for(session, raw_url)
        return build_prefill_link(reference, entry_map, profile.user_id), entry_map

    async def on_login(self, profile: LineProfile, session: LinkageSession, raw_url: Optional[str] = None) -> PrefillLink:
        link, _ = await self._link_for(profile, session, raw_url)
        return link

    async def _push(self, profile: LineProfile, link: PrefillLink, entry_map: EntryMap) -> None:
        try:
            await self.notifier.send_card(profile.user_id, link.url, entry_map.title, entry_map.description)
        except Exception:  # noqa: BLE001
            logger.warning("send-message failed for %s", profile.user_id, exc_info=True)

    def notify_best_effort(
        self, session: LinkageSession, profile: LineProfile, link: PrefillLink, entry_map: EntryMap
    ) -> Optional[asyncio.Task]:
        """Schedule the push and return right away; failures only get logged."""
        if self.notifier is None or not session.notification.try_trigger():
            return None
        task = asyncio.create_task(self._push(profile, link, entry_map))
        self._tasks.add(task)

        def _finished(done: asyncio.Task) -> None:
            self._tasks.discard(done)
            session.notification.mark_done()

        task.add_done_callback(_finished)
        return task

    def claim_navigation(self, session: LinkageSession) -> bool:
        if not session.navigation.try_trigger():
            return False
        session.navigation.mark_done()
        return True

    def _save_user(self, profile: LineProfile) -> None:
        if self.repository is None:
            return
        try:
            self.repository.upsert(profile.user_id, profile.display_name, profile.picture_url)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to save user %s", profile.user_id)

    async def run(
        self,
        session: LinkageSession,
        form_url: str,
        access_token: Optional[str] = None,
        notify: bool = False,
        redirect: bool = False,
    ) -> LinkageResult:
        session.activate(form_url)
        if session.login.is_logged_in() and not access_token:
            profile = await session.login.get_profile()
        else:
            profile = await session.login.login(access_token)
        self._save_user(profile)

        link, entry_map = await self._link_for(profile, session, form_url)

        notified = False
        if notify:
            notified = self.notify_best_effort(session, profile, link, entry_map) is not None
        navigate = self.claim_navigation(session) if redirect else False
        return LinkageResult(link=link, entry_map=entry_map, profile=profile, navigate=navigate, notified=notified)
