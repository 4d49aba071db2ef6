from __future__ import annotations

from fastapi import APIRouter, Depends

from loan_portal.auth.capabilities import Capability
from loan_portal.auth.dependencies import require
from loan_portal.domain.entities.ticket import TicketCreateRequest, TicketUpdateRequest
from loan_portal.services.portal_session import PortalSession
from loan_portal.utils.response import success

router = APIRouter(prefix="/tickets", tags=["tickets"])


@router.get("")
async def list_tickets(session: PortalSession = Depends(require(Capability.AUTHENTICATED))) -> dict:
    tickets = await session.tickets.list_tickets()
    return success({"tickets": [t.model_dump(mode="json") for t in tickets]})


@router.post("")
async def create_ticket(
    body: TicketCreateRequest,
    session: PortalSession = Depends(require(Capability.AUTHENTICATED)),
) -> dict:
    return success(await session.tickets.create_ticket(body), message="ticket created")


@router.get("/stats")
async def ticket_stats(session: PortalSession = Depends(require(Capability.MANAGE_TICKETS))) -> dict:
    return success(await session.tickets.stats())


@router.put("/{ticket_id}")
async def update_ticket(
    ticket_id: str,
    body: TicketUpdateRequest,
    session: PortalSession = Depends(require(Capability.MANAGE_TICKETS)),
) -> dict:
    return success(await session.tickets.update_ticket(ticket_id, body), message="ticket updated")


@router.delete("/{ticket_id}")
async def delete_ticket(
    ticket_id: str,
    session: PortalSession = Depends(require(Capability.MANAGE_TICKETS)),
) -> dict:
    await session.tickets.delete_ticket(ticket_id)
    return success({"id": ticket_id}, message="ticket deleted")
