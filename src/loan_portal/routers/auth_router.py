from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, SecretStr

from loan_portal.auth.capabilities import Capability, navigation_for
from loan_portal.auth.dependencies import get_portal_session, get_session_registry, require
from loan_portal.auth.identity import IdentityContext
from loan_portal.services.portal_session import PortalSession, SessionRegistry
from loan_portal.utils.response import success
from loan_portal.configs.logging_config import get_logger

log = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str
    password: SecretStr


class RegisterRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    email: str
    password: SecretStr

    def to_request(self) -> dict[str, Any]:
        body = self.model_dump(exclude={"password"})
        body["password"] = self.password.get_secret_value()
        return body


class ProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="allow")


def identity_view(identity: IdentityContext) -> dict[str, Any]:
    caps = identity.capabilities
    return {
        "state": identity.state.value,
        "user": identity.principal.to_dict() if identity.principal else None,
        "capabilities": sorted(c.value for c in caps),
        "is_authenticated": identity.is_authenticated,
        "is_admin": identity.is_admin,
        "is_applicant": identity.is_applicant,
        "is_promoter": identity.is_promoter,
        "navigation": navigation_for(caps),
        "error": identity.error,
    }


@router.post("/login")
async def login(
    body: LoginRequest,
    session: PortalSession = Depends(get_portal_session),
    registry: SessionRegistry = Depends(get_session_registry),
) -> dict:
    await session.identity.login(body.email, body.password.get_secret_value())
    session.reset_views()
    # a pre-login session id never becomes an authenticated one
    registry.rotate(session)
    return success(identity_view(session.identity), message="login successful")


@router.post("/register")
async def register(
    body: RegisterRequest,
    session: PortalSession = Depends(get_portal_session),
    registry: SessionRegistry = Depends(get_session_registry),
) -> dict:
    await session.identity.register(body.to_request())
    session.reset_views()
    registry.rotate(session)
    return success(identity_view(session.identity), message="registration successful")


@router.post("/logout")
async def logout(
    session: PortalSession = Depends(get_portal_session),
    registry: SessionRegistry = Depends(get_session_registry),
) -> dict:
    session.identity.logout()
    session.reset_views()
    registry.end(session)
    return success(identity_view(session.identity), message="logged out")


@router.get("/me")
async def me(session: PortalSession = Depends(require(None))) -> dict:
    return success(identity_view(session.identity))


@router.put("/profile")
async def update_profile(
    body: ProfileUpdateRequest,
    session: PortalSession = Depends(require(Capability.AUTHENTICATED)),
) -> dict:
    payload = await session.client.put("/auth/profile", body.model_dump())
    user = payload.get("user") if isinstance(payload, dict) else None
    if isinstance(user, dict):
        session.identity.update_principal(user)
    log.info("auth.profile.updated user_id=%s", session.identity.principal.user_id)
    return success(identity_view(session.identity), message="profile updated")
