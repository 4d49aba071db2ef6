from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, SecretStr, field_validator

from loan_portal.domain.entities.provider import Provider


class CredentialRecord(BaseModel):
    """
    A stored (username, secret) pair as the owner sees it.

    The owner's list never carries the secret.
    """

    id: str
    provider_id: str
    username: str | None = None
    created_at: datetime | None = None
    provider: Provider | None = None

    @field_validator("id", "provider_id", mode="before")
    @classmethod
    def stringify_ids(cls, v):
        return str(v) if v is not None else v


class CredentialSubmission(BaseModel):
    provider_id: str
    username: str
    password: SecretStr

    def to_request(self) -> dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "username": self.username,
            "password": self.password.get_secret_value(),
        }


class RevealableCredential(BaseModel):
    """Admin-side record, secret included but masked unless revealed."""

    id: str
    provider_id: str | None = None
    provider_name: str | None = None
    username: str | None = None
    secret: SecretStr
    created_at: datetime | None = None

    @field_validator("id", "provider_id", mode="before")
    @classmethod
    def stringify_ids(cls, v):
        return str(v) if v is not None else v

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "RevealableCredential":
        provider = raw.get("provider") or {}
        return cls(
            id=raw["id"],
            provider_id=raw.get("provider_id") or provider.get("id"),
            provider_name=provider.get("display_name") or raw.get("provider_name"),
            username=raw.get("username"),
            secret=raw.get("password") or raw.get("secret") or "",
            created_at=raw.get("created_at"),
        )


class CredentialInput(BaseModel):
    """Portal form body for a new credential."""

    provider_id: str = ""
    username: str = ""
    password: SecretStr = Field(default=SecretStr(""))
