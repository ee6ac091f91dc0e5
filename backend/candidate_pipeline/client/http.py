"""Async HTTP transport for the matching, calling and question services.

``ApiClient`` is the only place that talks ``httpx``. It injects the bearer
token, stamps request IDs and folds every failure (transport error,
non-2xx status, ``success: false`` envelope) into the error taxonomy of
``core.errors``.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol

import httpx

from ..core.config import Settings, settings as default_settings
from ..core.errors import (
    AuthenticationError,
    NotMatchedError,
    ServiceError,
    TransportError,
)
from ..core.logging import stamp_request_id

logger = logging.getLogger(__name__)

NO_MATCH_CODE = "no_match"


class CredentialProvider(Protocol):
    """Supplies the bearer token for each request; owns the token lifecycle."""

    def get_token(self) -> str | None:
        ...


class StaticCredentialProvider:
    """Fixed token, e.g. read once from settings or handed over by a login flow."""

    def __init__(self, token: str | None) -> None:
        self._token = token

    def get_token(self) -> str | None:
        return self._token


def _error_message(body: Mapping[str, Any]) -> str | None:
    for key in ("error", "message", "detail"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _error_list(body: Mapping[str, Any]) -> list[str]:
    errors = body.get("errors")
    if isinstance(errors, list):
        return [str(e) for e in errors]
    detail = body.get("detail")
    if isinstance(detail, list):
        # FastAPI validation errors
        return [str(d.get("msg", d)) if isinstance(d, dict) else str(d) for d in detail]
    return []


class ApiClient:
    """Thin async JSON client with uniform failure semantics."""

    def __init__(
        self,
        credentials: CredentialProvider,
        *,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        config: Settings | None = None,
    ) -> None:
        cfg = config or default_settings
        self._credentials = credentials
        self._client = httpx.AsyncClient(
            base_url=base_url or cfg.API_BASE_URL,
            transport=transport,
            timeout=cfg.HTTP_TIMEOUT_SECONDS,
            headers={"Accept": "application/json"},
            event_hooks={"request": [stamp_request_id]},
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _auth_headers(self) -> dict[str, str]:
        token = self._credentials.get_token()
        if not token:
            raise AuthenticationError()
        return {"Authorization": f"Bearer {token}"}

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        data: Mapping[str, Any] | None = None,
        files: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one request and return the decoded JSON object.

        Raises:
            AuthenticationError: no token, or the server answered 401/403.
            NotMatchedError: business rejection with ``code == "no_match"``.
            ServiceError: any other non-2xx status or ``success: false``.
            TransportError: network failure, timeout or non-JSON body.
        """
        headers = self._auth_headers()
        try:
            response = await self._client.request(
                method, path, params=params, json=json, data=data, files=files, headers=headers
            )
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out", method, path)
            raise TransportError("The server took too long to respond. Please retry.") from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError() from exc

        try:
            body = response.json()
        except ValueError as exc:
            logger.warning("%s %s returned non-JSON (status %s)", method, path, response.status_code)
            if response.status_code in (401, 403):
                raise AuthenticationError() from exc
            raise TransportError("The server sent an unexpected response.") from exc
        if not isinstance(body, dict):
            raise TransportError("The server sent an unexpected response.")

        if response.status_code in (401, 403):
            raise AuthenticationError(_error_message(body))
        if body.get("code") == NO_MATCH_CODE:
            raise NotMatchedError(_error_message(body))
        if not response.is_success or body.get("success") is False:
            logger.info("%s %s rejected (status %s)", method, path, response.status_code)
            raise ServiceError(
                _error_message(body),
                errors=_error_list(body),
                status_code=response.status_code,
            )
        return body

    async def get(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self.request("DELETE", path, **kwargs)
