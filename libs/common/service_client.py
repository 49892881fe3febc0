"""Authenticated HTTP access to sibling services.

Students, educators, catalog products and enrollments live in other services
and are only ever reached through a ``ServiceClient``; this service never
reads their tables.

Usage:
    students = ServiceClient(settings.STUDENTS_SERVICE_URL, calling_service="payments")
    student = await students.get_json(f"/internal/students/{student_id}")
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from libs.auth.dependencies import _service_role_jwt
from libs.common.logging import get_request_id


class ServiceCallError(Exception):
    """The sibling service was unreachable or answered with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ServiceClient:
    """One sibling service, called with a short-lived service-role JWT."""

    def __init__(self, base_url: str, *, calling_service: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.calling_service = calling_service
        self.timeout = timeout

    def _headers(self, idempotency_key: Optional[str] = None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {_service_role_jwt(self.calling_service)}",
            "X-Caller-Service": self.calling_service,
        }
        # Lets the callee's logs line up with the request that triggered the call
        request_id = get_request_id()
        if request_id:
            headers["X-Request-ID"] = request_id
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        idempotency_key: Optional[str] = None,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(
                    method,
                    f"{self.base_url}{path}",
                    headers=self._headers(idempotency_key),
                    json=json,
                )
        except httpx.RequestError as e:
            raise ServiceCallError(f"{method} {path} unreachable: {e}") from e

    async def get_json(self, path: str) -> Optional[dict]:
        """GET a resource; None when the service answers 404."""
        response = await self._send("GET", path)
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise ServiceCallError(
                f"GET {path} returned {response.status_code}", response.status_code
            )
        return response.json()

    async def post_json(
        self, path: str, payload: dict, *, idempotency_key: Optional[str] = None
    ) -> httpx.Response:
        """POST a JSON body; any 4xx/5xx raises ``ServiceCallError``."""
        response = await self._send(
            "POST", path, json=payload, idempotency_key=idempotency_key
        )
        if response.status_code >= 400:
            raise ServiceCallError(
                f"POST {path} returned {response.status_code}: {response.text}",
                response.status_code,
            )
        return response
