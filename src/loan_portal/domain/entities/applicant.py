from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ApplicantStatus(str, Enum):
    APPROVED = "approved"
    UNDER_REVIEW = "under_review"
    PENDING_BANK_INFO = "pending_bank_info"
    REJECTED = "rejected"
    INCOMPLETE = "incomplete"


class Applicant(BaseModel):
    id: str
    email: str | None = None
    status: str | None = None
    profile: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v):
        return str(v)

    @property
    def full_name(self) -> str:
        first = self.profile.get("first_name") or ""
        last = self.profile.get("last_name") or ""
        return f"{first} {last}".strip()


class ApplicantStatusUpdate(BaseModel):
    status: ApplicantStatus
