"""
Single source of truth for role-derived permissions.

Everything that branches on who the user is (route gating, navigation, the
derived flags on the identity context) goes through `resolve_capabilities`.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from loan_portal.auth.models import Principal, Role


class Capability(str, Enum):
    AUTHENTICATED = "authenticated"
    APPLICANT = "applicant"
    ADMIN = "admin"
    PROMOTER = "promoter"
    MANAGE_OWN_CREDENTIALS = "manage_own_credentials"
    REVIEW_APPLICANTS = "review_applicants"
    REVEAL_CREDENTIALS = "reveal_credentials"
    MANAGE_TICKETS = "manage_tickets"


_ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.APPLICANT: frozenset({Capability.APPLICANT, Capability.MANAGE_OWN_CREDENTIALS}),
    Role.ADMIN: frozenset(
        {
            Capability.ADMIN,
            Capability.REVIEW_APPLICANTS,
            Capability.REVEAL_CREDENTIALS,
            Capability.MANAGE_TICKETS,
        }
    ),
    Role.PROMOTER: frozenset({Capability.PROMOTER}),
}


def resolve_capabilities(principal: Optional[Principal]) -> frozenset[Capability]:
    if principal is None:
        return frozenset()
    return frozenset({Capability.AUTHENTICATED}) | _ROLE_CAPABILITIES.get(principal.role, frozenset())


_APPLICANT_NAV = (
    {"path": "/dashboard", "label": "Dashboard"},
    {"path": "/profile", "label": "Mi Perfil"},
    {"path": "/bank-credentials", "label": "Datos Bancarios"},
)

_ADMIN_NAV = (
    {"path": "/admin", "label": "Panel Admin"},
    {"path": "/admin/applicants", "label": "Solicitantes"},
    {"path": "/admin/tickets", "label": "Tickets"},
    {"path": "/admin/audit", "label": "Auditoría"},
)


def navigation_for(capabilities: frozenset[Capability]) -> list[dict[str, str]]:
    if Capability.ADMIN in capabilities:
        return [dict(item) for item in _ADMIN_NAV]
    if Capability.AUTHENTICATED in capabilities:
        return [dict(item) for item in _APPLICANT_NAV]
    return []
