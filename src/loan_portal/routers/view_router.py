from __future__ import annotations

from fastapi import APIRouter, Depends

from loan_portal.auth.capabilities import Capability, navigation_for
from loan_portal.auth.dependencies import require
from loan_portal.services.portal_session import PortalSession
from loan_portal.utils.response import success

router = APIRouter(tags=["views"])


@router.get("/login")
async def login_view(session: PortalSession = Depends(require(None))) -> dict:
    identity = session.identity
    return success(
        {
            "view": "login",
            "authenticated": identity.is_authenticated,
            "error": identity.error,
        }
    )


@router.get("/unauthorized")
async def unauthorized_view(session: PortalSession = Depends(require(None))) -> dict:
    return success(
        {"view": "unauthorized", "navigation": navigation_for(session.identity.capabilities)},
        message="you do not have access to this page",
    )


@router.get("/")
@router.get("/dashboard")
async def dashboard_view(session: PortalSession = Depends(require(Capability.AUTHENTICATED))) -> dict:
    principal = session.identity.principal
    return success(
        {
            "view": "dashboard",
            "greeting": principal.display_name,
            "role": principal.role.value,
            "navigation": navigation_for(session.identity.capabilities),
        }
    )
