from typing import Any, Optional

import httpx

from loan_portal.errors import NetworkError, ServerError, UnauthorizedError, ValidationError
from loan_portal.webclient.TokenStore import TokenStore
from loan_portal.configs.logging_config import get_logger

log = get_logger(__name__)

_MESSAGE_FIELDS = ("message", "detail", "error")


def extract_message(resp: httpx.Response) -> str:
    """Structured message of a non-2xx response, consumed verbatim for display."""
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for field in _MESSAGE_FIELDS:
            value = payload.get(field)
            if isinstance(value, str) and value:
                return value
    text = resp.text.strip()
    return text or f"HTTP {resp.status_code}"


def classify(resp: httpx.Response) -> Exception:
    status = resp.status_code
    message = extract_message(resp)
    if status in (401, 403):
        return UnauthorizedError(message, remote_status=status)
    if 400 <= status < 500:
        return ValidationError(message, remote_status=status)
    return ServerError(message, remote_status=status)


class SessionClient:
    """
    Issues requests against the loan platform API on behalf of one browser session.

    Attaches `Authorization: Bearer <token>` when the TokenStore holds a token and
    classifies failures into NetworkError / UnauthorizedError / ValidationError /
    ServerError. Never retries; never touches session state.
    """

    def __init__(self, base_url: str, token_store: TokenStore, client: httpx.AsyncClient = None):
        self.base_url = base_url.rstrip("/")
        self.token_store = token_store
        self.session = client or httpx.AsyncClient()

    async def request(self, method: str, path: str, body: Optional[Any] = None, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        headers.setdefault("Accept", "application/json")
        token = self.token_store.get()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        method = method.upper()
        url = f"{self.base_url}{path}"
        if body is not None:
            kwargs["json"] = body

        log.debug("session_client.request method=%s path=%s auth=%s", method, path, bool(token))
        try:
            resp = await self.session.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            log.warning(
                "session_client.network_error method=%s path=%s error_type=%s",
                method,
                path,
                type(exc).__name__,
            )
            raise NetworkError() from exc

        if resp.is_success:
            if resp.status_code == 204 or not resp.content:
                return None
            try:
                return resp.json()
            except ValueError as exc:
                raise ServerError("invalid response body", remote_status=resp.status_code) from exc

        err = classify(resp)
        log.info(
            "session_client.failure method=%s path=%s status=%s kind=%s",
            method,
            path,
            resp.status_code,
            type(err).__name__,
        )
        raise err

    async def get(self, path: str, **kwargs):
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, body: Optional[Any] = None, **kwargs):
        return await self.request("POST", path, body, **kwargs)

    async def put(self, path: str, body: Optional[Any] = None, **kwargs):
        return await self.request("PUT", path, body, **kwargs)

    async def delete(self, path: str, **kwargs):
        return await self.request("DELETE", path, **kwargs)

    async def aclose(self) -> None:
        await self.session.aclose()
