from __future__ import annotations

import httpx
import pytest

from loan_portal.errors import CatalogUnavailableError, NotFoundError
from loan_portal.services.provider_catalog import ProviderCatalog


async def test_server_listing_is_fetched_once(client, api) -> None:
    catalog = ProviderCatalog(client)
    first = await catalog.load()
    second = await catalog.load()
    assert first is second
    assert first.source == "server"
    assert [p.id for p in first.providers] == ["P1", "P2", "P3"]
    assert all(p.authoritative for p in first.providers)
    assert api.count("GET", "/applicants/banks") == 1


async def test_unreachable_catalog_falls_back_without_caching(client, api) -> None:
    api.fail[("GET", "/applicants/banks")] = httpx.ConnectError("down")
    catalog = ProviderCatalog(client)

    listing = await catalog.load()
    assert listing.source == "fallback"
    assert listing.providers
    assert all(p.source == "fallback" and p.id.startswith("fallback:") for p in listing.providers)
    assert catalog.cached() is None

    del api.fail[("GET", "/applicants/banks")]
    assert (await catalog.load()).source == "server"


async def test_server_error_also_falls_back(client, api) -> None:
    api.fail[("GET", "/applicants/banks")] = httpx.Response(502, text="bad gateway")
    assert (await ProviderCatalog(client).load()).source == "fallback"


async def test_submission_refused_for_fallback_catalog(client, api) -> None:
    api.fail[("GET", "/applicants/banks")] = httpx.ConnectError("down")
    catalog = ProviderCatalog(client)
    with pytest.raises(CatalogUnavailableError):
        await catalog.resolve_for_submission("fallback:bbva")


async def test_resolve_known_and_unknown(client) -> None:
    catalog = ProviderCatalog(client)
    assert (await catalog.resolve_for_submission("P2")).display_name == "Santander"
    with pytest.raises(NotFoundError):
        await catalog.resolve_for_submission("bbva")
