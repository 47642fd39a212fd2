from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from idp_actions.config import Settings

SIGNING_KEYS = {
    "uniqueSession": "unique-session-secret",
    "preAccessToken": "pre-access-token-secret",
    "storeFederatedClaims": "federated-claims-secret",
    "postPasswordReset": "password-reset-secret",
}


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "ZITADEL_DOMAIN": "idp.example.test",
        "ACCESS_TOKEN": "test-pat",
        "SIGNING_KEYS": dict(SIGNING_KEYS),
    }
    values.update(overrides)
    return Settings(**values)


class FakePlatform:
    """In-memory stand-in for the identity platform's HTTP API."""

    def __init__(self) -> None:
        self.sessions: dict[str, list[dict[str, Any]]] = {}
        self.metadata: dict[str, list[dict[str, str]]] = {}
        self.users: dict[str, dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.fail_list_with: int | None = None
        self.fail_delete: dict[str, int] = {}
        self.reverse_listing = False

    def add_session(self, user_id: str, session_id: str, created: str) -> None:
        self.sessions.setdefault(user_id, []).append(
            {
                "id": session_id,
                "creationDate": created,
                "factors": {"user": {"id": user_id, "loginName": f"{user_id}@example.test"}},
            }
        )

    def remaining(self, user_id: str) -> list[str]:
        return [session["id"] for session in self.sessions.get(user_id, [])]

    def calls(self, method: str | None = None) -> list[httpx.Request]:
        return [request for request in self.requests if method is None or request.method == method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/v2/sessions/search" and request.method == "POST":
            if self.fail_list_with is not None:
                return httpx.Response(self.fail_list_with, text="list unavailable")
            body = json.loads(request.content)
            user_id = body["queries"][0]["userIdQuery"]["id"]
            records = sorted(
                self.sessions.get(user_id, []),
                key=lambda record: record["creationDate"],
                reverse=not self.reverse_listing,
            )
            return httpx.Response(200, json={"details": {"totalResult": str(len(records))}, "sessions": records})

        if path.startswith("/v2/sessions/") and request.method == "DELETE":
            session_id = path.rsplit("/", 1)[-1]
            if session_id in self.fail_delete:
                return httpx.Response(self.fail_delete[session_id], text="delete failed")
            for records in self.sessions.values():
                for record in records:
                    if record["id"] == session_id:
                        records.remove(record)
                        return httpx.Response(200, json={"details": {}})
            return httpx.Response(404, json={"code": 5, "message": "Session not found"})

        if path.startswith("/management/v1/users/") and path.endswith("/metadata/_bulk"):
            user_id = path.split("/")[4]
            self.metadata.setdefault(user_id, []).extend(json.loads(request.content)["metadata"])
            return httpx.Response(200, json={"details": {}})

        if path.startswith("/v2/users/") and request.method == "GET":
            user_id = path.rsplit("/", 1)[-1]
            if user_id not in self.users:
                return httpx.Response(404, json={"message": "User could not be found"})
            return httpx.Response(200, json={"user": self.users[user_id]})

        if path == "/oauth/v2/token":
            return httpx.Response(200, json={"access_token": "issued-token", "token_type": "Bearer"})

        return httpx.Response(404, text="no route")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture()
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture()
def settings() -> Settings:
    return make_settings()
