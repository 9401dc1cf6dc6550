"""Shared fixtures for tests.

No test talks to a real Vault.  ``FakeVaultAdapter`` takes the place of hvac's
``RawAdapter``: it records every request and replays canned
``requests.Response`` objects keyed by ``(method, url)``.
"""

from __future__ import annotations

import dataclasses
import json
from typing import Any

import pytest
import requests

from vault_session.auth.credentials import (
    AppRoleCredentials,
    SessionConfig,
    TokenCredentials,
)
from vault_session.auth.session import VaultSession
from vault_session.vault.http import VaultTransport

VAULT_ADDR = "http://127.0.0.1:8200"


def make_response(status: int, body: Any = None, url: str = "/v1/") -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.url = f"{VAULT_ADDR}{url}"
    if body is None:
        response._content = b""
    else:
        response._content = json.dumps(body).encode()
        response.headers["Content-Type"] = "application/json"
    return response


def auth_payload(
    *,
    client_token: str = "s.approle-token",
    accessor: str = "accessor-1",
    lease_duration: int = 3600,
    renewable: bool = True,
    token_type: str = "service",
) -> dict[str, Any]:
    return {
        "request_id": "req-1",
        "lease_id": "",
        "renewable": False,
        "lease_duration": 0,
        "data": None,
        "auth": {
            "client_token": client_token,
            "accessor": accessor,
            "policies": ["default"],
            "token_policies": ["default"],
            "lease_duration": lease_duration,
            "renewable": renewable,
            "token_type": token_type,
        },
    }


def lookup_payload(
    *,
    accessor: str = "accessor-static",
    renewable: bool = True,
    ttl: int = 7200,
    token_type: str = "service",
) -> dict[str, Any]:
    return {
        "data": {
            "accessor": accessor,
            "renewable": renewable,
            "ttl": ttl,
            "type": token_type,
            "policies": ["root"],
        }
    }


@dataclasses.dataclass
class RecordedRequest:
    method: str
    url: str
    headers: dict[str, str]
    data: Any

    @property
    def json(self) -> Any:
        return json.loads(self.data) if self.data is not None else None


class FakeVaultAdapter:
    """Records requests and answers them from a table of canned responses.

    Each route holds a queue; the last entry is repeated once the others are
    used up.  An exception in the queue is raised instead of returned.
    Unknown routes answer 404.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Any]] = {}
        self.calls: list[RecordedRequest] = []
        self.closed = False

    def add(self, method: str, endpoint: str, status: int = 200, body: Any = None) -> None:
        url = f"/v1/{endpoint}"
        self.routes.setdefault((method.upper(), url), []).append(make_response(status, body, url))

    def add_error(self, method: str, endpoint: str, exc: Exception) -> None:
        self.routes.setdefault((method.upper(), f"/v1/{endpoint}"), []).append(exc)

    def request(self, method, url, headers=None, raise_exception=True, **kwargs):
        self.calls.append(RecordedRequest(method, url, dict(headers or {}), kwargs.get("data")))
        queue = self.routes.get((method.upper(), url))
        if not queue:
            return make_response(404, {"errors": []}, url)
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True

    def calls_to(self, endpoint: str) -> list[RecordedRequest]:
        return [call for call in self.calls if call.url == f"/v1/{endpoint}"]


@pytest.fixture
def adapter() -> FakeVaultAdapter:
    return FakeVaultAdapter()


@pytest.fixture
def transport(adapter: FakeVaultAdapter) -> VaultTransport:
    return VaultTransport(VAULT_ADDR, adapter=adapter)


@pytest.fixture
def approle_config() -> SessionConfig:
    return SessionConfig(
        address=VAULT_ADDR,
        credentials=AppRoleCredentials(
            role_id="role-123",
            secret_id="secret-456",
            logout_revoke=True,
        ),
    )


@pytest.fixture
def token_config() -> SessionConfig:
    return SessionConfig(
        address=VAULT_ADDR,
        credentials=TokenCredentials(token="s.static-token", logout_revoke=True),
    )


@pytest.fixture
def approle_session(approle_config: SessionConfig, transport: VaultTransport):
    session = VaultSession(approle_config, transport=transport)
    yield session
    session.renewal.cancel()


@pytest.fixture
def token_session(token_config: SessionConfig, transport: VaultTransport):
    session = VaultSession(token_config, transport=transport)
    yield session
    session.renewal.cancel()
