"""HTTP client for the identity platform's session, user and metadata APIs."""

from __future__ import annotations

import enum
from typing import Any

import httpx
import structlog

from .codec import MetadataEntry
from .config import Settings
from .errors import RemoteError
from .schemas import Session, UserRecord

logger = structlog.get_logger(__name__)

TOKEN_SCOPE = "openid urn:zitadel:iam:org:project:id:zitadel:aud"


def unexpected_body(response: httpx.Response, operation: str) -> RemoteError:
    """A 2xx reply whose body is not the JSON shape the operation expects."""
    logger.error("identity_platform_unexpected_body", operation=operation, status=response.status_code)
    return RemoteError(response.status_code, response.text, operation=operation)


class DeleteOutcome(str, enum.Enum):
    DELETED = "deleted"
    NOT_FOUND = "not_found"


class IdentityPlatformClient:
    """Single-shot calls against the platform; nothing here retries."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = settings
        self._http = httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.http_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "IdentityPlatformClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _send(self, operation: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("identity_platform_unreachable", operation=operation, error=str(exc))
            raise RemoteError(None, str(exc), operation=operation) from exc

    async def fetch_access_token(self) -> str:
        """Client-credentials grant, used when no static token is configured."""
        settings = self._settings
        if not settings.client_id or settings.client_secret is None:
            raise RemoteError(None, "no bearer credential configured", operation="fetch_access_token")

        response = await self._send(
            "fetch_access_token",
            "POST",
            "/oauth/v2/token",
            data={
                "grant_type": "client_credentials",
                "client_id": settings.client_id,
                "client_secret": settings.client_secret.get_secret_value(),
                "scope": TOKEN_SCOPE,
            },
        )
        if not response.is_success:
            raise RemoteError(response.status_code, response.text, operation="fetch_access_token")
        try:
            return response.json()["access_token"]
        except (ValueError, KeyError, TypeError) as exc:
            raise unexpected_body(response, "fetch_access_token") from exc

    async def _auth_headers(self) -> dict[str, str]:
        if self._settings.access_token is not None:
            token = self._settings.access_token.get_secret_value()
        else:
            token = await self.fetch_access_token()
        return {"Authorization": f"Bearer {token}"}

    async def list_sessions(self, user_id: str) -> list[Session]:
        """Sessions of ``user_id``, requested newest first."""
        response = await self._send(
            "list_sessions",
            "POST",
            "/v2/sessions/search",
            headers=await self._auth_headers(),
            json={
                "queries": [{"userIdQuery": {"id": user_id}}],
                "sortingColumn": "SESSION_FIELD_NAME_CREATION_DATE",
                "asc": False,
            },
        )
        if not response.is_success:
            raise RemoteError(response.status_code, response.text, operation="list_sessions")

        try:
            body = response.json() or {}
            return [Session.model_validate(record) for record in body.get("sessions") or []]
        except (ValueError, AttributeError, TypeError) as exc:
            raise unexpected_body(response, "list_sessions") from exc

    async def delete_session(self, session_id: str) -> DeleteOutcome:
        response = await self._send(
            "delete_session",
            "DELETE",
            f"/v2/sessions/{session_id}",
            headers=await self._auth_headers(),
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return DeleteOutcome.NOT_FOUND
        if not response.is_success:
            raise RemoteError(response.status_code, response.text, operation="delete_session")
        return DeleteOutcome.DELETED

    async def set_user_metadata(self, user_id: str, entries: list[MetadataEntry]) -> None:
        """Bulk write; ``entries`` values must already be transport-encoded."""
        response = await self._send(
            "set_user_metadata",
            "POST",
            f"/management/v1/users/{user_id}/metadata/_bulk",
            headers=await self._auth_headers(),
            json={"metadata": [entry.model_dump() for entry in entries]},
        )
        if not response.is_success:
            raise RemoteError(response.status_code, response.text, operation="set_user_metadata")

    async def get_user(self, user_id: str) -> UserRecord:
        response = await self._send(
            "get_user",
            "GET",
            f"/v2/users/{user_id}",
            headers=await self._auth_headers(),
        )
        if not response.is_success:
            raise RemoteError(response.status_code, response.text, operation="get_user")
        try:
            return UserRecord.model_validate(response.json()["user"])
        except (ValueError, KeyError, TypeError) as exc:
            raise unexpected_body(response, "get_user") from exc
