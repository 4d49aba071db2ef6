from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class Provider(BaseModel):
    """
    A supported bank.

    `source` tells server-issued entries apart from the static fallback catalog;
    only `source == "server"` ids may be sent in a credential submission.
    """

    id: str
    display_name: str
    brand_code: str | None = None
    logo_ref: str | None = None
    source: Literal["server", "fallback"] = "server"

    @property
    def authoritative(self) -> bool:
        return self.source == "server"


DEFAULT_LOGO = "/assets/banks/default-bank.png"

# Shown only when the remote catalog is unreachable. Ids are namespaced so they
# can never collide with a server id.
FALLBACK_PROVIDERS: tuple[Provider, ...] = tuple(
    Provider(
        id=f"fallback:{code}",
        display_name=name,
        brand_code=code,
        logo_ref=logo,
        source="fallback",
    )
    for code, name, logo in (
        ("bbva", "BBVA", "/assets/banks/bbva.jpg"),
        ("santander", "Santander", "/assets/banks/santander.png"),
        ("banamex", "Banamex", "/assets/banks/banamex.jpg"),
        ("banorte", "Banorte", "/assets/banks/banorte.jpg"),
        ("hsbc", "HSBC", "/assets/banks/hsbc.png"),
        ("azteca", "Banco Azteca", "/assets/banks/azteca.jpg"),
    )
)


class ProviderListing(BaseModel):
    providers: list[Provider] = Field(default_factory=list)
    source: Literal["server", "fallback"] = "server"
