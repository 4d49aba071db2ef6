from __future__ import annotations

from typing import Optional

from loan_portal.domain.entities.provider import FALLBACK_PROVIDERS, Provider, ProviderListing
from loan_portal.errors import CatalogUnavailableError, NetworkError, NotFoundError, ServerError
from loan_portal.webclient.SessionClient import SessionClient
from loan_portal.configs.logging_config import get_logger

log = get_logger(__name__)


class ProviderCatalog:
    """
    Supported banks, fetched once per session.

    Only a server listing is cached. When the remote catalog is unreachable the
    static fallback is returned (tagged `source="fallback"`) and the next `load()`
    tries the server again.
    """

    def __init__(self, client: SessionClient):
        self._client = client
        self._cached: Optional[ProviderListing] = None

    async def load(self) -> ProviderListing:
        if self._cached is not None:
            return self._cached
        try:
            payload = await self._client.get("/applicants/banks")
        except (NetworkError, ServerError) as exc:
            log.warning("catalog.fallback reason=%s", type(exc).__name__)
            return ProviderListing(providers=list(FALLBACK_PROVIDERS), source="fallback")

        banks = payload.get("banks", []) if isinstance(payload, dict) else payload or []
        providers = [Provider.model_validate({**b, "source": "server"}) for b in banks]
        self._cached = ProviderListing(providers=providers, source="server")
        log.info("catalog.loaded count=%s", len(providers))
        return self._cached

    def cached(self) -> Optional[ProviderListing]:
        return self._cached

    def invalidate(self) -> None:
        self._cached = None

    async def resolve_for_submission(self, provider_id: str) -> Provider:
        """
        The provider a credential may be submitted for. Anything not backed by a
        server listing is refused.
        """
        listing = await self.load()
        if listing.source != "server":
            log.warning("catalog.submission_refused reason=fallback_catalog")
            raise CatalogUnavailableError()
        for provider in listing.providers:
            if provider.id == provider_id:
                if not provider.authoritative:
                    raise CatalogUnavailableError()
                return provider
        raise NotFoundError(f"unknown bank: {provider_id}")
