from __future__ import annotations

from typing import Any

from loan_portal.utils.time_utils import now_ms


def success(data: Any, message: str = "request processed successfully") -> dict[str, Any]:
    return {"status": "success", "message": message, "data": data, "timestamp": now_ms()}


def failure(message: str, data: Any = None) -> dict[str, Any]:
    body = {"status": "failure", "message": message, "timestamp": now_ms()}
    if data is not None:
        body["data"] = data
    return body
