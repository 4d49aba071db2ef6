from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Mapping, Optional

from loan_portal.auth.capabilities import Capability, resolve_capabilities
from loan_portal.auth.models import Principal
from loan_portal.errors import (
    AppError,
    NetworkError,
    ServerError,
    SessionSupersededError,
    UnauthorizedError,
    ValidationError,
)
from loan_portal.webclient.SessionClient import SessionClient
from loan_portal.webclient.TokenStore import TokenStore
from loan_portal.configs.logging_config import get_logger

log = get_logger(__name__)


class IdentityState(str, Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class IdentityContext:
    """
    Owns the login/register/logout lifecycle for one browser session.

    State machine: UNKNOWN -> CHECKING -> {AUTHENTICATED, ANONYMOUS}. The principal
    and the capability set always change together in `_apply`, so derived flags
    never outlive the principal they were computed from.
    """

    def __init__(self, client: SessionClient, token_store: TokenStore):
        self._client = client
        self._tokens = token_store
        self._state = IdentityState.UNKNOWN
        self._principal: Optional[Principal] = None
        self._capabilities: frozenset[Capability] = frozenset()
        self._error: Optional[str] = None
        self._check: Optional[asyncio.Task] = None
        # bumped by login/register/logout; a check started under an older
        # generation must not apply its result
        self._generation = 0
        self._recheck = False

    # ----------------------------
    # Read side
    # ----------------------------

    @property
    def state(self) -> IdentityState:
        return self._state

    @property
    def principal(self) -> Optional[Principal]:
        return self._principal

    @property
    def capabilities(self) -> frozenset[Capability]:
        return self._capabilities

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_authenticated(self) -> bool:
        return Capability.AUTHENTICATED in self._capabilities

    @property
    def is_admin(self) -> bool:
        return Capability.ADMIN in self._capabilities

    @property
    def is_applicant(self) -> bool:
        return Capability.APPLICANT in self._capabilities

    @property
    def is_promoter(self) -> bool:
        return Capability.PROMOTER in self._capabilities

    # ----------------------------
    # Startup check
    # ----------------------------

    async def ensure_started(self) -> IdentityState:
        """
        Run the startup session check once; concurrent callers await the same check.

        A check that ended in NetworkError/ServerError kept the token; the next
        call checks again while that token is still stored.
        """
        if self._state == IdentityState.ANONYMOUS and self._recheck:
            self._recheck = False
            if self._tokens.get():
                log.info("identity.check.retry")
                self._state = IdentityState.UNKNOWN
        if self._state == IdentityState.UNKNOWN:
            if not self._tokens.get():
                log.info("identity.check.no_token")
                self._apply(None)
                return self._state
            self._state = IdentityState.CHECKING
            self._check = asyncio.ensure_future(self._run_check(self._generation))
        check = self._check
        if check is not None and not check.done():
            # wait() does not raise if the check was cancelled by login/logout
            await asyncio.wait({check})
        return self._state

    async def _run_check(self, generation: int) -> None:
        try:
            payload = await self._client.get("/auth/me")
        except UnauthorizedError:
            if generation != self._generation:
                return
            log.info("identity.check.unauthorized clearing_token=true")
            self._tokens.clear()
            self._apply(None)
            return
        except (NetworkError, ServerError) as exc:
            if generation != self._generation:
                return
            # token may still be valid; checked again on the next request
            log.warning("identity.check.transient_failure kind=%s keeping_token=true", type(exc).__name__)
            self._apply(None)
            self._recheck = True
            return
        except AppError as exc:
            if generation != self._generation:
                return
            log.warning("identity.check.failed status=%s message=%s", exc.http_status, exc.message)
            self._apply(None)
            return

        if generation != self._generation:
            log.info("identity.check.stale_result_dropped")
            return
        principal = self._principal_from(payload)
        if principal is None:
            self._apply(None)
            return
        log.info("identity.check.ok user_id=%s role=%s", principal.user_id, principal.role.value)
        self._apply(principal)

    # ----------------------------
    # Lifecycle
    # ----------------------------

    async def login(self, email: str, password: str) -> Principal:
        self._error = None
        generation = self._generation
        log.info("identity.login.start")
        try:
            payload = await self._client.post("/auth/login", {"email": email, "password": password})
            return self._accept_session(payload, "login", generation)
        except UnauthorizedError as exc:
            # no session exists yet, so a 401 here means bad credentials
            err = ValidationError(exc.message or "invalid credentials", remote_status=exc.remote_status)
            self._reject(err, "login", generation)
            raise err from exc
        except SessionSupersededError:
            raise
        except AppError as exc:
            self._reject(exc, "login", generation)
            raise

    async def register(self, profile: Mapping[str, Any]) -> Principal:
        self._error = None
        generation = self._generation
        log.info("identity.register.start")
        try:
            payload = await self._client.post("/auth/register", dict(profile))
            return self._accept_session(payload, "register", generation)
        except SessionSupersededError:
            raise
        except AppError as exc:
            self._reject(exc, "register", generation)
            raise

    def logout(self) -> None:
        log.info(
            "identity.logout user_id=%s",
            self._principal.user_id if self._principal else None,
        )
        self._tokens.clear()
        self._error = None
        self._recheck = False
        self._cancel_check()
        self._apply(None)

    def force_logout(self) -> None:
        """Reaction to an UnauthorizedError surfaced by any workflow."""
        log.info("identity.forced_logout")
        self.logout()

    def update_principal(self, user: Mapping[str, Any]) -> Principal:
        """Replace the principal wholesale (profile update)."""
        principal = Principal.from_api(user)
        self._apply(principal)
        return principal

    def clear_error(self) -> None:
        self._error = None

    # ----------------------------
    # Internals
    # ----------------------------

    def _accept_session(self, payload: Any, op: str, generation: int) -> Principal:
        if generation != self._generation:
            # logout (or another login) happened while this request was in flight
            log.info("identity.%s.superseded", op)
            raise SessionSupersededError()
        if not isinstance(payload, dict) or not payload.get("token"):
            raise AppError(f"{op} response missing token", http_status=502)
        principal = self._principal_from(payload)
        if principal is None:
            raise AppError(f"{op} response missing user", http_status=502)

        self._cancel_check()
        self._recheck = False
        self._tokens.set(payload["token"])
        self._apply(principal)
        log.info("identity.%s.done user_id=%s role=%s", op, principal.user_id, principal.role.value)
        return principal

    def _reject(self, exc: AppError, op: str, generation: int) -> None:
        log.info("identity.%s.failed kind=%s", op, type(exc).__name__)
        if generation == self._generation:
            self._error = exc.message

    def _principal_from(self, payload: Any) -> Optional[Principal]:
        user = payload.get("user") if isinstance(payload, dict) else None
        if not isinstance(user, dict):
            return None
        try:
            return Principal.from_api(user)
        except (KeyError, ValueError) as exc:
            log.warning("identity.invalid_user_payload error=%s", str(exc))
            return None

    def _apply(self, principal: Optional[Principal]) -> None:
        self._principal = principal
        self._capabilities = resolve_capabilities(principal)
        self._state = IdentityState.AUTHENTICATED if principal else IdentityState.ANONYMOUS

    def _cancel_check(self) -> None:
        self._generation += 1
        if self._check is not None and not self._check.done():
            self._check.cancel()
        self._check = None
