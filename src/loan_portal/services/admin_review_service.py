from __future__ import annotations

from typing import Any, Optional

from loan_portal.domain.entities.applicant import Applicant, ApplicantStatus
from loan_portal.domain.entities.credential import RevealableCredential
from loan_portal.errors import NotFoundError
from loan_portal.webclient.SessionClient import SessionClient
from loan_portal.configs.logging_config import get_logger

log = get_logger(__name__)

MASK = "••••••••"


class CredentialRevealView:
    """
    One open admin dialog over an applicant's stored credentials.

    Read-only. Every secret starts masked; the per-record reveal set lives only
    as long as this object and is never persisted.
    """

    def __init__(self, applicant: Optional[Applicant], credentials: list[RevealableCredential]):
        self.applicant = applicant
        self._credentials = {c.id: c for c in credentials}
        self._order = [c.id for c in credentials]
        self._revealed: set[str] = set()

    def is_revealed(self, credential_id: str) -> bool:
        return credential_id in self._revealed

    def toggle(self, credential_id: str) -> bool:
        if credential_id not in self._credentials:
            raise NotFoundError(f"credential not found: {credential_id}")
        if credential_id in self._revealed:
            self._revealed.discard(credential_id)
            return False
        self._revealed.add(credential_id)
        return True

    def render(self) -> dict[str, Any]:
        rows = []
        for cid in self._order:
            c = self._credentials[cid]
            revealed = cid in self._revealed
            rows.append(
                {
                    "id": c.id,
                    "provider_id": c.provider_id,
                    "provider_name": c.provider_name,
                    "username": c.username,
                    "secret": c.secret.get_secret_value() if revealed else MASK,
                    "revealed": revealed,
                    "created_at": c.created_at.isoformat() if c.created_at else None,
                }
            )
        return {
            "applicant": self.applicant.model_dump() if self.applicant else None,
            "credentials": rows,
        }


class AdminReviewService:
    def __init__(self, client: SessionClient):
        self._client = client
        self._view: Optional[CredentialRevealView] = None
        self._view_applicant_id: Optional[str] = None

    # ----------------------------
    # Applicants
    # ----------------------------

    async def list_applicants(
        self, status: Optional[str] = None, search: Optional[str] = None
    ) -> list[Applicant]:
        payload = await self._client.get("/admin/applicants")
        raw = payload.get("applicants", []) if isinstance(payload, dict) else payload or []
        applicants = [Applicant.model_validate(a) for a in raw]
        if status and status != "all":
            applicants = [a for a in applicants if a.status == status]
        if search:
            term = search.lower()
            applicants = [
                a
                for a in applicants
                if term in (a.email or "").lower() or term in a.full_name.lower()
            ]
        log.info("admin.applicants.list returned=%s status=%s", len(applicants), status)
        return applicants

    async def update_status(self, applicant_id: str, status: ApplicantStatus) -> None:
        log.info("admin.applicant_status.start applicant_id=%s status=%s", applicant_id, status.value)
        await self._client.put(f"/admin/applicants/{applicant_id}/status", {"status": status.value})
        log.info("admin.applicant_status.done applicant_id=%s", applicant_id)

    async def stats(self) -> dict[str, Any]:
        return await self._client.get("/admin/stats") or {}

    # ----------------------------
    # Credential reveal
    # ----------------------------

    async def fetch_credentials_for_applicant(self, applicant_id: str) -> CredentialRevealView:
        """
        Open (or reopen) the reveal dialog. Reopening always starts masked.
        """
        self._view = None
        self._view_applicant_id = applicant_id
        payload = await self._client.get(f"/admin/applicants/{applicant_id}/credentials")

        if self._view_applicant_id != applicant_id:
            # another applicant was opened, or the dialog closed, while this was in flight
            log.info("admin.reveal.stale_dropped applicant_id=%s", applicant_id)
            raise NotFoundError("credential view closed")

        payload = payload or {}
        raw_applicant = payload.get("applicant") if isinstance(payload, dict) else None
        raw_creds = payload.get("credentials", []) if isinstance(payload, dict) else payload
        view = CredentialRevealView(
            Applicant.model_validate(raw_applicant) if raw_applicant else None,
            [RevealableCredential.from_api(c) for c in raw_creds or []],
        )
        self._view = view
        log.info("admin.reveal.opened applicant_id=%s records=%s", applicant_id, len(raw_creds or []))
        return view

    def current_view(self, applicant_id: str) -> CredentialRevealView:
        if self._view is None or self._view_applicant_id != applicant_id:
            raise NotFoundError("credential view is not open")
        return self._view

    def toggle_reveal(self, applicant_id: str, credential_id: str) -> CredentialRevealView:
        view = self.current_view(applicant_id)
        revealed = view.toggle(credential_id)
        log.info(
            "admin.reveal.toggle applicant_id=%s credential_id=%s revealed=%s",
            applicant_id,
            credential_id,
            revealed,
        )
        return view

    def close_view(self) -> None:
        self._view = None
        self._view_applicant_id = None
