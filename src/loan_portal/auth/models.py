from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class Role(str, Enum):
    APPLICANT = "applicant"
    ADMIN = "admin"
    PROMOTER = "promoter"


@dataclass(frozen=True)
class Principal:
    user_id: str
    email: str
    role: Role
    profile: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, user: Mapping[str, Any]) -> "Principal":
        return cls(
            user_id=str(user["id"]),
            email=str(user.get("email") or ""),
            role=Role(user["role"]),
            profile=dict(user.get("profile") or {}),
        )

    @property
    def display_name(self) -> str:
        return self.profile.get("first_name") or self.email

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.user_id,
            "email": self.email,
            "role": self.role.value,
            "profile": dict(self.profile),
        }
