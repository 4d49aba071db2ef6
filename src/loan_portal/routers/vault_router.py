from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from loan_portal.auth.capabilities import Capability
from loan_portal.auth.dependencies import require
from loan_portal.domain.entities.credential import CredentialInput
from loan_portal.errors import AppError, UnauthorizedError
from loan_portal.services.portal_session import PortalSession
from loan_portal.utils.response import failure, success
from loan_portal.configs.logging_config import get_logger

log = get_logger(__name__)

router = APIRouter(prefix="/bank-credentials", tags=["bank-credentials"])

_gate = require(Capability.MANAGE_OWN_CREDENTIALS)


@router.get("")
async def bank_credentials_view(session: PortalSession = Depends(_gate)) -> dict:
    await session.vault.open()
    view = session.vault.view()
    log.info(
        "vault.view user_id=%s connected=%s available=%s catalog=%s",
        session.identity.principal.user_id,
        len(view["connected"]),
        len(view["available"]),
        view["catalog_source"],
    )
    return success(view)


@router.post("")
async def submit_credentials(body: CredentialInput, session: PortalSession = Depends(_gate)):
    vault = session.vault
    log.info(
        "vault.submit.request user_id=%s provider_id=%s",
        session.identity.principal.user_id,
        body.provider_id,
    )
    try:
        if vault.catalog_source is None:
            await vault.open()
        if vault.pending is None or vault.pending.provider.id != body.provider_id:
            vault.select_provider(body.provider_id)
        await vault.submit(body.username, body.password.get_secret_value())
    except UnauthorizedError:
        raise
    except AppError as exc:
        # the pending form (username, provider) stays so the UI can keep the input
        return JSONResponse(status_code=exc.http_status, content=failure(exc.message, data=vault.view()))
    return success(vault.view(), message="credentials saved")


@router.delete("/{credential_id}")
async def delete_credentials(
    credential_id: str,
    confirm: bool = Query(False),
    session: PortalSession = Depends(_gate),
):
    vault = session.vault
    try:
        await vault.delete(credential_id, confirmed=confirm)
    except UnauthorizedError:
        raise
    except AppError as exc:
        return JSONResponse(status_code=exc.http_status, content=failure(exc.message, data=vault.view()))
    return success(vault.view(), message="credentials deleted")
