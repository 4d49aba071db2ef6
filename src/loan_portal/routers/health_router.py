from __future__ import annotations

from fastapi import APIRouter, Depends

from loan_portal.auth.dependencies import get_portal_session
from loan_portal.errors import AppError
from loan_portal.services.portal_session import PortalSession
from loan_portal.utils.response import success

router = APIRouter()


@router.get("/health")
async def health() -> dict:
    return success({"ok": True}, message="healthy")


@router.get("/health/upstream")
async def upstream_health(session: PortalSession = Depends(get_portal_session)) -> dict:
    try:
        data = await session.client.get("/health")
    except AppError as exc:
        return success({"ok": False, "message": exc.message}, message="upstream unavailable")
    return success({"ok": True, "upstream": data}, message="upstream healthy")
