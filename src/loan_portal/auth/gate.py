from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from loan_portal.auth.capabilities import Capability
from loan_portal.auth.identity import IdentityState


class GateOutcome(str, Enum):
    LOADING = "loading"
    RENDER = "render"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_UNAUTHORIZED = "redirect_unauthorized"


@dataclass(frozen=True)
class GateDecision:
    outcome: GateOutcome
    location: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.outcome == GateOutcome.RENDER


Requirement = Union[None, Capability]


def decide(
    state: IdentityState,
    capabilities: frozenset[Capability],
    required: Requirement,
    *,
    login_path: str = "/login",
    unauthorized_path: str = "/unauthorized",
) -> GateDecision:
    """
    Pure routing decision.

    While the startup check is pending nothing is rendered and nothing is
    redirected. Public views (`required is None`) render once the check settles.
    """
    if state in (IdentityState.UNKNOWN, IdentityState.CHECKING):
        return GateDecision(GateOutcome.LOADING)
    if required is None:
        return GateDecision(GateOutcome.RENDER)
    if state == IdentityState.ANONYMOUS:
        return GateDecision(GateOutcome.REDIRECT_LOGIN, login_path)
    if required in capabilities:
        return GateDecision(GateOutcome.RENDER)
    return GateDecision(GateOutcome.REDIRECT_UNAUTHORIZED, unauthorized_path)
