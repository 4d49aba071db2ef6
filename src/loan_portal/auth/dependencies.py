from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from loan_portal.auth.capabilities import Capability
from loan_portal.auth.gate import GateOutcome, decide
from loan_portal.configs.settings import Settings, get_settings
from loan_portal.services.portal_session import PortalSession, SessionRegistry
from loan_portal.configs.logging_config import get_logger

log = get_logger(__name__)


class GateRedirect(Exception):
    """Raised by a gate dependency; rendered as a 303 redirect by the app."""

    def __init__(self, location: str, reason: str):
        super().__init__(reason)
        self.location = location
        self.reason = reason


class GatePending(Exception):
    """The startup check is still in flight; rendered as a neutral loading view."""


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.session_registry


async def get_portal_session(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> PortalSession:
    """
    Resolve (or create) the portal session bound to the browser's session cookie,
    and make sure its startup check has settled before any gate decision.
    """
    registry = get_session_registry(request)
    sid = request.cookies.get(settings.session_cookie_name)
    session = registry.get_or_create(sid)
    # the cookie itself is written by the app middleware, so redirects carry it too
    request.state.portal_session = session
    await session.identity.ensure_started()
    return session


def require(capability: Optional[Capability]):
    """Dependency factory: gate a route on one capability (None for public views)."""

    async def _gate(
        session: PortalSession = Depends(get_portal_session),
        settings: Settings = Depends(get_settings),
    ) -> PortalSession:
        identity = session.identity
        decision = decide(
            identity.state,
            identity.capabilities,
            capability,
            login_path=settings.login_path,
            unauthorized_path=settings.unauthorized_path,
        )
        if decision.outcome == GateOutcome.RENDER:
            return session
        if decision.outcome == GateOutcome.LOADING:
            raise GatePending()
        log.info(
            "gate.redirect outcome=%s required=%s state=%s",
            decision.outcome.value,
            capability.value if capability else None,
            identity.state.value,
        )
        raise GateRedirect(decision.location, decision.outcome.value)

    return _gate
