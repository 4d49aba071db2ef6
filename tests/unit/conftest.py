from __future__ import annotations

import itertools
import json
from typing import Any, Optional

import httpx
import pytest

from loan_portal.webclient.SessionClient import SessionClient
from loan_portal.webclient.TokenStore import TokenStore

BASE_URL = "http://api.test/api"


class FakeLoanApi:
    """
    In-memory stand-in for the remote loan platform API, served through
    httpx.MockTransport. `fail` injects a response or exception per (method, path).
    """

    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {
            "a@b.com": {
                "id": "u1",
                "email": "a@b.com",
                "password": "secret",
                "role": "applicant",
                "status": "pending_bank_info",
                "profile": {"first_name": "Ana", "last_name": "Lopez"},
            },
            "admin@b.com": {
                "id": "u2",
                "email": "admin@b.com",
                "password": "admin-pass",
                "role": "admin",
                "profile": {"first_name": "Root"},
            },
        }
        self.tokens: dict[str, str] = {}
        self.banks: list[dict[str, Any]] = [
            {"id": "P1", "display_name": "BBVA", "brand_code": "bbva", "logo_ref": "/bbva.jpg"},
            {"id": "P2", "display_name": "Santander", "brand_code": "santander", "logo_ref": "/san.png"},
            {"id": "P3", "display_name": "HSBC", "brand_code": "hsbc", "logo_ref": "/hsbc.png"},
        ]
        self.credentials: list[dict[str, Any]] = []
        self.tickets: list[dict[str, Any]] = []
        self.calls: list[tuple[str, str]] = []
        self.fail: dict[tuple[str, str], Any] = {}
        self._ids = itertools.count(100)

    # ----------------------------
    # helpers for tests
    # ----------------------------

    def issue_token(self, email: str) -> str:
        token = f"tok-{next(self._ids)}"
        self.tokens[token] = email
        return token

    def add_credential(self, email: str, provider_id: str, username: str, password: str) -> dict[str, Any]:
        record = {
            "id": f"c{next(self._ids)}",
            "owner": email,
            "provider_id": provider_id,
            "username": username,
            "password": password,
            "created_at": "2024-05-01T10:00:00+00:00",
        }
        self.credentials.append(record)
        return record

    def count(self, method: str, path: str) -> int:
        return self.calls.count((method, path))

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    # ----------------------------
    # request handling
    # ----------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path.removeprefix("/api")
        self.calls.append((method, path))

        injected = self.fail.get((method, path))
        if isinstance(injected, Exception):
            raise injected
        if isinstance(injected, httpx.Response):
            return injected

        body = json.loads(request.content) if request.content else None
        user = self._user_for(request)

        if (method, path) == ("POST", "/auth/login"):
            found = self.users.get(body.get("email"))
            if not found or found["password"] != body.get("password"):
                return httpx.Response(400, json={"message": "Credenciales inválidas"})
            return httpx.Response(200, json={"token": self.issue_token(found["email"]), "user": _public(found)})

        if (method, path) == ("POST", "/auth/register"):
            if body["email"] in self.users:
                return httpx.Response(422, json={"detail": "El correo ya está registrado"})
            new = {"id": f"u{next(self._ids)}", "role": "applicant", "profile": {}, **body}
            self.users[new["email"]] = new
            return httpx.Response(201, json={"token": self.issue_token(new["email"]), "user": _public(new)})

        if (method, path) == ("GET", "/applicants/banks"):
            return httpx.Response(200, json={"banks": self.banks})

        if (method, path) == ("GET", "/health"):
            return httpx.Response(200, json={"status": "ok"})

        if user is None:
            return httpx.Response(401, json={"message": "token inválido"})

        if (method, path) == ("GET", "/auth/me"):
            return httpx.Response(200, json={"user": _public(user)})

        if (method, path) == ("PUT", "/auth/profile"):
            user["profile"] = {**user.get("profile", {}), **body}
            return httpx.Response(200, json={"user": _public(user)})

        if (method, path) == ("GET", "/applicants/credentials"):
            own = [_owner_view(c) for c in self.credentials if c["owner"] == user["email"]]
            return httpx.Response(200, json=own)

        if (method, path) == ("POST", "/applicants/credentials"):
            if body["provider_id"] not in {b["id"] for b in self.banks}:
                return httpx.Response(422, json={"message": "Banco no soportado"})
            record = self.add_credential(user["email"], body["provider_id"], body["username"], body["password"])
            return httpx.Response(201, json=_owner_view(record))

        if method == "DELETE" and path.startswith("/applicants/credentials/"):
            cid = path.rsplit("/", 1)[-1]
            for c in self.credentials:
                if c["id"] == cid and c["owner"] == user["email"]:
                    self.credentials.remove(c)
                    return httpx.Response(204)
            return httpx.Response(404, json={"message": "Credencial no encontrada"})

        if path.startswith("/admin/"):
            if user["role"] != "admin":
                return httpx.Response(403, json={"message": "forbidden"})
            return self._admin(method, path, body)

        if path.startswith("/tickets"):
            return self._tickets(method, path, body, user)

        return httpx.Response(404, json={"message": "not found"})

    def _admin(self, method: str, path: str, body: Any) -> httpx.Response:
        parts = path.strip("/").split("/")
        if (method, path) == ("GET", "/admin/applicants"):
            applicants = [_public(u) for u in self.users.values() if u["role"] == "applicant"]
            return httpx.Response(200, json={"applicants": applicants})
        if (method, path) == ("GET", "/admin/stats"):
            return httpx.Response(200, json={"users": {"total": len(self.users)}})
        applicant = next((u for u in self.users.values() if u["id"] == parts[2]), None)
        if applicant is None:
            return httpx.Response(404, json={"message": "Solicitante no encontrado"})
        if method == "GET" and parts[-1] == "credentials":
            bank_by_id = {b["id"]: b for b in self.banks}
            creds = [
                {**_owner_view(c), "password": c["password"], "provider": bank_by_id.get(c["provider_id"])}
                for c in self.credentials
                if c["owner"] == applicant["email"]
            ]
            return httpx.Response(200, json={"applicant": _public(applicant), "credentials": creds})
        if method == "PUT" and parts[-1] == "status":
            applicant["status"] = body["status"]
            return httpx.Response(204)
        return httpx.Response(404, json={"message": "not found"})

    def _tickets(self, method: str, path: str, body: Any, user: dict[str, Any]) -> httpx.Response:
        if (method, path) == ("GET", "/tickets/"):
            return httpx.Response(200, json={"tickets": self.tickets})
        if (method, path) == ("POST", "/tickets/"):
            ticket = {"id": next(self._ids), "status": "open", "creator": user["email"], **body}
            self.tickets.append(ticket)
            return httpx.Response(201, json=ticket)
        if (method, path) == ("GET", "/tickets/stats"):
            return httpx.Response(200, json={"total": len(self.tickets)})
        tid = path.rsplit("/", 1)[-1]
        ticket = next((t for t in self.tickets if str(t["id"]) == tid), None)
        if ticket is None:
            return httpx.Response(404, json={"message": "ticket not found"})
        if method == "PUT":
            ticket.update(body)
            return httpx.Response(200, json=ticket)
        if method == "DELETE":
            self.tickets.remove(ticket)
            return httpx.Response(204)
        return httpx.Response(404, json={"message": "not found"})

    def _user_for(self, request: httpx.Request) -> Optional[dict[str, Any]]:
        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer "):
            return None
        email = self.tokens.get(header.removeprefix("Bearer "))
        return self.users.get(email) if email else None


def _public(user: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in user.items() if k != "password"}


def _owner_view(record: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in record.items() if k not in ("password", "owner")}


@pytest.fixture
def api() -> FakeLoanApi:
    return FakeLoanApi()


@pytest.fixture
def store() -> TokenStore:
    return TokenStore()


@pytest.fixture
def client(api: FakeLoanApi, store: TokenStore) -> SessionClient:
    return SessionClient(BASE_URL, store, client=httpx.AsyncClient(transport=api.transport()))
