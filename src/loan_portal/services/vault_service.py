from __future__ import annotations

from typing import Any, Optional

from pydantic import SecretStr

from loan_portal.domain.entities.credential import CredentialRecord, CredentialSubmission
from loan_portal.domain.entities.provider import Provider, ProviderListing
from loan_portal.errors import (
    AppError,
    CatalogUnavailableError,
    ConfirmationRequiredError,
    DuplicateCredentialError,
    NetworkError,
    UnauthorizedError,
    ValidationError,
)
from loan_portal.services.provider_catalog import ProviderCatalog
from loan_portal.webclient.SessionClient import SessionClient
from loan_portal.configs.logging_config import get_logger

log = get_logger(__name__)


class PendingSubmission:
    """
    In-memory form state for one provider-branded dialog.

    The secret lives here (and in the outbound request body) only.
    """

    def __init__(self, provider: Provider):
        self.provider = provider
        self.username = ""
        self.password: Optional[SecretStr] = None
        self.error: Optional[str] = None
        self.retryable = False
        self.submitting = False

    def fill(self, username: str, password: str) -> None:
        self.username = username
        self.password = SecretStr(password)

    def discard_secret(self) -> None:
        self.password = None

    def view(self) -> dict[str, Any]:
        return {
            "provider": self.provider.model_dump(),
            "username": self.username,
            "has_password": bool(self.password and self.password.get_secret_value()),
            "error": self.error,
            "retryable": self.retryable,
            "submitting": self.submitting,
        }


class CredentialVaultWorkflow:
    """
    Applicant-facing credential flow.

    All list state is server-confirmed: a submission or deletion is reflected only
    after the API accepts it, and the list is always re-read from the server.
    """

    def __init__(self, client: SessionClient, catalog: ProviderCatalog):
        self._client = client
        self._catalog = catalog
        self._listing: Optional[ProviderListing] = None
        self._credentials: list[CredentialRecord] = []
        self._pending: Optional[PendingSubmission] = None
        self._mounted = True
        self.error: Optional[str] = None

    # ----------------------------
    # View lifecycle
    # ----------------------------

    async def open(self) -> None:
        self._mounted = True
        self.error = None
        self._listing = await self._catalog.load()
        await self.refresh()

    def close(self) -> None:
        """The view went away; late responses are dropped and form state is discarded."""
        self._mounted = False
        if self._pending is not None:
            self._pending.discard_secret()
        self._pending = None
        self._listing = None
        self._credentials = []
        self.error = None

    async def refresh(self) -> list[CredentialRecord]:
        payload = await self._client.get("/applicants/credentials")
        records = _parse_records(payload)
        if not self._mounted:
            log.info("vault.refresh.dropped reason=unmounted")
            return records
        self._credentials = records
        return records

    # ----------------------------
    # Read side
    # ----------------------------

    @property
    def credentials(self) -> list[CredentialRecord]:
        return list(self._credentials)

    @property
    def pending(self) -> Optional[PendingSubmission]:
        return self._pending

    @property
    def catalog_source(self) -> Optional[str]:
        return self._listing.source if self._listing else None

    def connected_provider_ids(self) -> set[str]:
        return {c.provider_id for c in self._credentials}

    def available_providers(self) -> list[Provider]:
        if self._listing is None:
            return []
        connected = self.connected_provider_ids()
        return [p for p in self._listing.providers if p.id not in connected]

    def view(self) -> dict[str, Any]:
        by_id = {p.id: p for p in (self._listing.providers if self._listing else [])}
        connected = []
        for c in self._credentials:
            provider = c.provider or by_id.get(c.provider_id)
            connected.append(
                {
                    "id": c.id,
                    "provider_id": c.provider_id,
                    "provider_name": provider.display_name if provider else None,
                    "logo_ref": provider.logo_ref if provider else None,
                    "username": c.username,
                    "created_at": c.created_at.isoformat() if c.created_at else None,
                }
            )
        return {
            "catalog_source": self.catalog_source,
            "available": [p.model_dump() for p in self.available_providers()],
            "connected": connected,
            "pending": self._pending.view() if self._pending else None,
            "error": self.error,
        }

    # ----------------------------
    # Submission
    # ----------------------------

    def select_provider(self, provider_id: str) -> PendingSubmission:
        if provider_id in self.connected_provider_ids():
            raise DuplicateCredentialError()
        for provider in self.available_providers():
            if provider.id == provider_id:
                if self._pending is not None:
                    self._pending.discard_secret()
                self._pending = PendingSubmission(provider)
                return self._pending
        raise ValidationError("selecciona un banco válido")

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.discard_secret()
        self._pending = None
        self.error = None

    async def submit(self, username: str, password: str) -> list[CredentialRecord]:
        """
        Submit the pending provider's credentials.

        ValidationError and NetworkError keep the pending form (with input) in
        place; UnauthorizedError is re-raised for the identity context.
        """
        pending = self._pending
        if pending is None:
            raise ValidationError("selecciona un banco")
        pending.fill(username, password)
        pending.error = None
        pending.retryable = False

        if not pending.provider.id or not username or not password:
            pending.error = "Todos los campos son requeridos"
            raise ValidationError(pending.error)

        if not pending.provider.authoritative:
            # picked from the offline list; the form has to be reopened from the server catalog
            err = CatalogUnavailableError()
            pending.error = err.message
            log.info("vault.submit.refused reason=fallback_provider provider_id=%s", pending.provider.id)
            raise err

        try:
            provider = await self._catalog.resolve_for_submission(pending.provider.id)
        except AppError as exc:
            pending.error = exc.message
            raise
        if provider.id in self.connected_provider_ids():
            err = DuplicateCredentialError()
            pending.error = err.message
            raise err

        submission = CredentialSubmission(
            provider_id=provider.id, username=username, password=pending.password
        )
        pending.submitting = True
        log.info("vault.submit.start provider_id=%s", provider.id)
        try:
            await self._client.post("/applicants/credentials", submission.to_request())
        except UnauthorizedError:
            pending.discard_secret()
            raise
        except NetworkError as exc:
            pending.error = exc.message
            pending.retryable = True
            log.info("vault.submit.network_error provider_id=%s", provider.id)
            raise
        except AppError as exc:
            pending.error = exc.message
            log.info("vault.submit.rejected provider_id=%s status=%s", provider.id, exc.http_status)
            raise
        finally:
            pending.submitting = False

        pending.discard_secret()
        self._pending = None
        log.info("vault.submit.done provider_id=%s", provider.id)
        return await self.refresh()

    # ----------------------------
    # Deletion
    # ----------------------------

    async def delete(self, credential_id: str, *, confirmed: bool = False) -> list[CredentialRecord]:
        if not confirmed:
            raise ConfirmationRequiredError()
        log.info("vault.delete.start credential_id=%s", credential_id)
        await self._client.delete(f"/applicants/credentials/{credential_id}")
        if self._mounted:
            self._credentials = [c for c in self._credentials if c.id != credential_id]
        log.info("vault.delete.done credential_id=%s", credential_id)
        return self.credentials


def _parse_records(payload: Any) -> list[CredentialRecord]:
    if isinstance(payload, dict):
        payload = payload.get("credentials", [])
    if not isinstance(payload, list):
        return []
    return [CredentialRecord.model_validate(item) for item in payload]
