from __future__ import annotations

from typing import Any

from loan_portal.domain.entities.ticket import Ticket, TicketCreateRequest, TicketUpdateRequest
from loan_portal.webclient.SessionClient import SessionClient
from loan_portal.configs.logging_config import get_logger

log = get_logger(__name__)


class TicketService:
    """Thin pass-through to the remote ticket endpoints."""

    def __init__(self, client: SessionClient):
        self._client = client

    async def list_tickets(self) -> list[Ticket]:
        payload = await self._client.get("/tickets/")
        raw = payload.get("tickets", []) if isinstance(payload, dict) else payload or []
        return [Ticket.model_validate(t) for t in raw]

    async def create_ticket(self, body: TicketCreateRequest) -> Any:
        log.info("ticket.create priority=%s", body.priority.value)
        return await self._client.post("/tickets/", body.model_dump(mode="json"))

    async def update_ticket(self, ticket_id: str, body: TicketUpdateRequest) -> Any:
        changes = body.model_dump(mode="json", exclude_none=True)
        log.info("ticket.update ticket_id=%s fields=%s", ticket_id, sorted(changes))
        return await self._client.put(f"/tickets/{ticket_id}", changes)

    async def delete_ticket(self, ticket_id: str) -> None:
        log.info("ticket.delete ticket_id=%s", ticket_id)
        await self._client.delete(f"/tickets/{ticket_id}")

    async def stats(self) -> dict[str, Any]:
        return await self._client.get("/tickets/stats") or {}
