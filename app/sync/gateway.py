"""
Remote Call Gateway: request/response calls against the authoritative store.

Calls are keyed by a namespace/action pair (``assignment.update``,
``event.attachAssignment``, ...) and either return the canonical payload
or raise GatewayError with a human-readable message.
"""
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from app.core.config import settings
from app.core.errors import GatewayError
from app.sync.records import RecordKind

logger = logging.getLogger(__name__)

_COLLECTIONS = {
    RecordKind.ASSIGNMENT: "/assignments",
    RecordKind.SUBMISSION: "/submissions",
    RecordKind.EVENT: "/events",
    RecordKind.SECTION: "/sections",
}

# (namespace, action) -> (HTTP method, path template)
ROUTES: Dict[Tuple[str, str], Tuple[str, str]] = {}
for _kind, _base in _COLLECTIONS.items():
    ROUTES[(_kind.value, "get")] = ("GET", _base + "/{id}")
    ROUTES[(_kind.value, "create")] = ("POST", _base + "/")
    ROUTES[(_kind.value, "update")] = ("PUT", _base + "/{id}")
    ROUTES[(_kind.value, "delete")] = ("DELETE", _base + "/{id}")
ROUTES[("event", "attachAssignment")] = ("POST", "/events/{id}/assignments")
ROUTES[("assignment", "listByClass")] = ("GET", "/assignments/class/{id}")
ROUTES[("submission", "listByAssignment")] = ("GET", "/submissions/assignment/{id}")
ROUTES[("grades", "submission")] = ("GET", "/grades/submission/{id}")


def error_kind(status_code: Optional[int]) -> str:
    if status_code is None:
        return "network"
    if status_code == 422 or status_code == 400:
        return "validation"
    if status_code in (401, 403):
        return "auth"
    if status_code == 404:
        return "not_found"
    if status_code in (408, 504):
        return "network"
    if status_code >= 500:
        return "server"
    return "unknown"


def field_errors(body: Any) -> Dict[str, str]:
    """First validation message per field from a FastAPI 422 body."""
    errors: Dict[str, str] = {}
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, list):
        for item in detail:
            if not isinstance(item, dict):
                continue
            loc = [str(part) for part in item.get("loc", []) if part not in ("body", "query", "path")]
            if loc and loc[-1] not in errors:
                errors[loc[-1]] = item.get("msg", "Invalid value")
    return errors


def error_message(body: Any, fallback: str = "An unexpected error occurred") -> str:
    """Human-readable message from an error response body."""
    if not isinstance(body, dict):
        return fallback
    detail = body.get("detail")
    if isinstance(detail, str) and detail:
        return detail
    if isinstance(detail, list) and detail:
        first = detail[0]
        if isinstance(first, dict) and first.get("msg"):
            return first["msg"]
    if isinstance(body.get("message"), str):
        return body["message"]
    return fallback


class HttpGateway:
    """Gateway over the store's HTTP API."""

    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url or settings.API_BASE_URL)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def call(
        self,
        namespace: str,
        action: str,
        record_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        try:
            method, template = ROUTES[(namespace, action)]
        except KeyError:
            raise GatewayError(f"Unknown call {namespace}.{action}", kind="unknown")
        path = template.format(id=record_id) if "{id}" in template else template

        try:
            response = await self._client.request(method, path, json=payload if method in ("POST", "PUT") else None)
        except httpx.HTTPError as e:
            logger.warning("%s.%s transport failure: %s", namespace, action, e)
            raise GatewayError(str(e) or "Network error", kind="network")

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            message = error_message(body, fallback=response.reason_phrase or "Request failed")
            logger.info("%s.%s failed with %s: %s", namespace, action, response.status_code, message)
            raise GatewayError(
                message,
                status_code=response.status_code,
                kind=error_kind(response.status_code),
                field_errors=field_errors(body),
            )
        return body

    async def get(self, kind: RecordKind, record_id: str) -> Dict[str, Any]:
        return await self.call(kind.value, "get", record_id)

    async def create(self, kind: RecordKind, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self.call(kind.value, "create", payload=data)

    async def update(self, kind: RecordKind, record_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        return await self.call(kind.value, "update", record_id, patch)

    async def delete(self, kind: RecordKind, record_id: str) -> Dict[str, Any]:
        return await self.call(kind.value, "delete", record_id)
