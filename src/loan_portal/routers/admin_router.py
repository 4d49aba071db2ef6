from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from loan_portal.auth.capabilities import Capability
from loan_portal.auth.dependencies import require
from loan_portal.domain.entities.applicant import ApplicantStatusUpdate
from loan_portal.services.portal_session import PortalSession
from loan_portal.utils.response import success
from loan_portal.configs.logging_config import get_logger

log = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/applicants")
async def list_applicants(
    status: Optional[str] = None,
    search: Optional[str] = None,
    session: PortalSession = Depends(require(Capability.REVIEW_APPLICANTS)),
) -> dict:
    applicants = await session.admin.list_applicants(status=status, search=search)
    return success({"applicants": [a.model_dump() for a in applicants]})


@router.get("/applicants/{applicant_id}/credentials")
async def open_credentials(
    applicant_id: str,
    session: PortalSession = Depends(require(Capability.REVEAL_CREDENTIALS)),
) -> dict:
    log.info(
        "admin.reveal.open admin_id=%s applicant_id=%s",
        session.identity.principal.user_id,
        applicant_id,
    )
    view = await session.admin.fetch_credentials_for_applicant(applicant_id)
    return success(view.render())


@router.post("/applicants/{applicant_id}/credentials/{credential_id}/reveal")
async def toggle_reveal(
    applicant_id: str,
    credential_id: str,
    session: PortalSession = Depends(require(Capability.REVEAL_CREDENTIALS)),
) -> dict:
    log.info(
        "admin.reveal.request admin_id=%s applicant_id=%s credential_id=%s",
        session.identity.principal.user_id,
        applicant_id,
        credential_id,
    )
    view = session.admin.toggle_reveal(applicant_id, credential_id)
    return success(view.render())


@router.delete("/applicants/{applicant_id}/credentials")
async def close_credentials(
    applicant_id: str,
    session: PortalSession = Depends(require(Capability.REVEAL_CREDENTIALS)),
) -> dict:
    session.admin.close_view()
    return success({"closed": applicant_id}, message="credential view closed")


@router.put("/applicants/{applicant_id}/status")
async def update_status(
    applicant_id: str,
    body: ApplicantStatusUpdate,
    session: PortalSession = Depends(require(Capability.REVIEW_APPLICANTS)),
) -> dict:
    await session.admin.update_status(applicant_id, body.status)
    return success({"id": applicant_id, "status": body.status.value}, message="status updated")


@router.get("/stats")
async def admin_stats(session: PortalSession = Depends(require(Capability.ADMIN))) -> dict:
    return success(await session.admin.stats())
