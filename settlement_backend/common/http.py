# common/http.py

"""
Small JSON-over-HTTP helper for outbound collaborator calls
(payment providers, vision extraction, tax authority).

Every call has a timeout. Every failure surfaces as DependencyError so the
caller can decide whether to retry; nothing here touches the database.
"""

from __future__ import annotations

import json
import socket
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from common.exceptions import DependencyError

DEFAULT_TIMEOUT_SECONDS = 10


def _safe_preview(text: str, limit: int = 500) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + " ...(truncated)"


def _decode_json(raw: str, *, service: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw or "{}")
    except ValueError as exc:
        raise DependencyError(
            f"{service} returned non-JSON: {_safe_preview(raw)}"
        ) from exc
    if not isinstance(parsed, dict):
        raise DependencyError(f"{service} returned a non-object JSON body")
    return parsed


def request_json(
    method: str,
    url: str,
    *,
    service: str,
    headers: dict | None = None,
    body: dict | None = None,
    timeout: float | None = None,
) -> dict[str, Any]:
    data = None
    if body is not None:
        data = json.dumps(body, ensure_ascii=False, default=str).encode("utf-8")

    req = Request(
        url,
        data=data,
        headers={
            "Content-Type": "application/json",
            "Accept": "application/json",
            **(headers or {}),
        },
        method=method,
    )

    try:
        with urlopen(req, timeout=timeout or DEFAULT_TIMEOUT_SECONDS) as resp:
            raw = resp.read().decode("utf-8", errors="replace")
    except HTTPError as e:
        try:
            detail = e.read().decode("utf-8", errors="replace")
        except OSError:
            detail = ""
        raise DependencyError(
            f"{service} HTTPError: {e.code} {_safe_preview(detail)}",
            code="DEPENDENCY_HTTP_ERROR",
        ) from e
    except (socket.timeout, TimeoutError) as e:
        raise DependencyError(f"{service} timed out", code="DEPENDENCY_TIMEOUT") from e
    except URLError as e:
        raise DependencyError(f"{service} URLError: {e.reason}") from e

    return _decode_json(raw, service=service)
