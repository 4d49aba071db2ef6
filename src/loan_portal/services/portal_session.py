from __future__ import annotations

import secrets
import time
from collections import OrderedDict
from typing import Callable, Optional

import httpx

from loan_portal.auth.identity import IdentityContext
from loan_portal.configs.settings import Settings
from loan_portal.repositories.token_storage import TokenStorage, build_token_storage
from loan_portal.services.admin_review_service import AdminReviewService
from loan_portal.services.provider_catalog import ProviderCatalog
from loan_portal.services.ticket_service import TicketService
from loan_portal.services.vault_service import CredentialVaultWorkflow
from loan_portal.webclient.SessionClient import SessionClient
from loan_portal.webclient.TokenStore import TokenStore
from loan_portal.configs.logging_config import get_logger

log = get_logger(__name__)

StorageFactory = Callable[[str], Optional[TokenStorage]]


class PortalSession:
    """
    Everything one browser session owns. The SessionClient instance is passed
    explicitly to every collaborator; nothing reaches for a module-level client.
    """

    def __init__(self, session_id: str, token_store: TokenStore, client: SessionClient):
        self.session_id = session_id
        self.tokens = token_store
        self.client = client
        self.identity = IdentityContext(client, token_store)
        self.catalog = ProviderCatalog(client)
        self.vault = CredentialVaultWorkflow(client, self.catalog)
        self.admin = AdminReviewService(client)
        self.tickets = TicketService(client)
        self.last_seen = time.monotonic()
        # set once the registry dropped this session; the cookie is then cleared
        self.ended = False

    def reset_views(self) -> None:
        """Drop per-view state, e.g. on logout."""
        self.vault.close()
        self.admin.close_view()
        self.catalog.invalidate()


class SessionRegistry:
    """
    In-memory map of session id -> PortalSession.

    Entries are kept in least-recently-used order. Sessions idle for longer than
    `idle_seconds` are evicted, and the map never holds more than `max_sessions`.
    Eviction only drops the in-memory state; a durable token stays in its medium
    so the same cookie can rehydrate the session later.
    """

    def __init__(
        self,
        base_url: str,
        http: httpx.AsyncClient,
        storage_factory: StorageFactory,
        *,
        idle_seconds: float = 1800.0,
        max_sessions: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._base_url = base_url
        self._http = http
        self._storage_factory = storage_factory
        self._idle_seconds = idle_seconds
        self._max_sessions = max(1, max_sessions)
        self._clock = clock
        self._sessions: OrderedDict[str, PortalSession] = OrderedDict()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http: httpx.AsyncClient,
        storage_factory: Optional[StorageFactory] = None,
    ) -> "SessionRegistry":
        if storage_factory is None:

            def storage_factory(sid: str) -> Optional[TokenStorage]:
                return build_token_storage(settings, sid)

        return cls(
            base_url=settings.api_base_url,
            http=http,
            storage_factory=storage_factory,
            idle_seconds=settings.session_idle_seconds,
            max_sessions=settings.session_max,
        )

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: Optional[str]) -> Optional[PortalSession]:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: Optional[str]) -> PortalSession:
        """
        Known id -> existing session. Unknown but well-formed id -> rehydrated only
        when its durable medium still holds a token (survives a restart).
        Anything else -> fresh session under a server-issued id.
        """
        now = self._clock()
        self._evict_idle(now)

        existing = self.get(session_id)
        if existing is not None:
            existing.last_seen = now
            self._sessions.move_to_end(existing.session_id)
            return existing

        store = None
        if _valid_session_id(session_id):
            candidate = TokenStore(self._storage_factory(session_id))
            if candidate.get():
                store = candidate
                log.info("portal_session.rehydrated")
        if store is None:
            session_id = _new_session_id()
            store = TokenStore(self._storage_factory(session_id))
            log.info("portal_session.created")

        session = self._build(session_id, store)
        session.last_seen = now
        self._add(session)
        return session

    def rotate(self, session: PortalSession) -> str:
        """
        Re-key a session under a fresh id (after login/register). The token moves
        to the new id's medium and the old id stops resolving.
        """
        old_id = session.session_id
        new_id = _new_session_id()
        session.tokens.rebind(self._storage_factory(new_id))
        self._sessions.pop(old_id, None)
        session.session_id = new_id
        self._add(session)
        log.info("portal_session.rotated")
        return new_id

    def end(self, session: PortalSession) -> None:
        """Drop a session for good (logout, forced logout)."""
        if self._sessions.get(session.session_id) is session:
            del self._sessions[session.session_id]
        session.ended = True
        log.info("portal_session.ended sessions=%s", len(self._sessions))

    def _build(self, session_id: str, store: TokenStore) -> PortalSession:
        client = SessionClient(self._base_url, store, client=self._http)
        return PortalSession(session_id, store, client)

    def _add(self, session: PortalSession) -> None:
        self._sessions[session.session_id] = session
        self._sessions.move_to_end(session.session_id)
        while len(self._sessions) > self._max_sessions:
            self._sessions.popitem(last=False)
            log.info("portal_session.evicted reason=capacity")

    def _evict_idle(self, now: float) -> None:
        while self._sessions:
            oldest = next(iter(self._sessions.values()))
            if now - oldest.last_seen < self._idle_seconds:
                break
            self._sessions.popitem(last=False)
            log.info("portal_session.evicted reason=idle")


def _new_session_id() -> str:
    return secrets.token_urlsafe(24)


def _valid_session_id(session_id: Optional[str]) -> bool:
    if not session_id or len(session_id) < 16 or len(session_id) > 64:
        return False
    return all(ch.isalnum() or ch in "-_" for ch in session_id)
