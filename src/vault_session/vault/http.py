"""Authenticated fetch against the Vault HTTP API.

Pattern: Single Request Path
-----------------------------
Every call the session makes, whether it is a login, a token lookup or an
arbitrary secret read, goes through ``VaultTransport.fetch``.  That one
method decides which headers are attached, how the body is encoded and how a
non-success response is turned into an exception.  Higher layers only choose
an endpoint, a token and a response contract.

The actual HTTP work is delegated to hvac's ``RawAdapter`` (a thin wrapper
around ``requests.Session``).  The adapter is told never to raise; status
classification happens here so that every failure carries the same
``(status, path, body)`` triple regardless of the endpoint.
"""

from __future__ import annotations

import json
import logging
import threading
import urllib.parse
from http import HTTPStatus
from typing import Any

import pydantic
import requests
from hvac.adapters import Adapter, RawAdapter

from vault_session.vault.contracts import Contract, parse_body

logger = logging.getLogger(__name__)


class VaultClientError(Exception):
    """Base class for every error raised by this package."""


class HTTPError(VaultClientError):
    """The server answered with a status the caller did not accept.

    Attributes:
        status: HTTP status code.
        path:   URL path of the request (``/v1/...``), never the full URL.
        body:   Decoded JSON error body, the raw text when it is not JSON,
                or ``None`` when the response was empty.
    """

    def __init__(self, status: int, path: str, body: Any = None) -> None:
        self.status = status
        self.path = path
        self.body = body
        super().__init__(self._describe())

    def _describe(self) -> str:
        if self.body is None:
            return f"Server responded with code {self.status}"
        return f"Server responded with code {self.status}: {json.dumps(self.body)}"

    @classmethod
    def from_response(cls, response: requests.Response) -> HTTPError:
        return cls(response.status_code, _url_path(response.url), _error_body(response))


class ResponseValidationError(VaultClientError):
    """The response body did not match the expected contract."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"Invalid response body from {path}: {reason}")


class RequestCancelledError(VaultClientError):
    """The caller's cancellation signal was set before the request completed."""


class VaultTransportError(VaultClientError):
    """The request never produced an HTTP response (DNS, TLS, timeout, ...)."""


def raise_if_cancelled(signal: threading.Event | None, endpoint: str) -> None:
    if signal is not None and signal.is_set():
        raise RequestCancelledError(f"Request to {endpoint} was cancelled")


class VaultTransport:
    """Issues single requests against one Vault address and namespace."""

    def __init__(
        self,
        address: str,
        namespace: str | None = None,
        *,
        adapter: Adapter | None = None,
        timeout: float = 30,
        verify: bool | str = True,
    ) -> None:
        self.address = address
        self.namespace = namespace
        self._adapter = adapter or RawAdapter(
            base_uri=address,
            timeout=timeout,
            verify=verify,
        )

    def fetch(
        self,
        contract: Contract | None,
        endpoint: str,
        *,
        method: str = "GET",
        token: str | None = None,
        body: Any = None,
        headers: dict[str, str] | None = None,
        signal: threading.Event | None = None,
    ) -> Any:
        """Send one request to ``/v1/<endpoint>`` and return the parsed body.

        With ``contract=None`` the call succeeds only on HTTP 204 and returns
        ``None``; any other status, 200 included, raises ``HTTPError``.
        Otherwise any 2xx is accepted and the JSON body is validated against
        *contract*.  A ``bytes`` body is sent untouched, anything else is
        JSON-encoded.  Bodies are never sent with GET.
        """
        request_headers = dict(headers or {})
        if self.namespace:
            request_headers["X-Vault-Namespace"] = f"{self.namespace.rstrip('/')}/"
        if token:
            request_headers["X-Vault-Token"] = token

        data: bytes | str | None = None
        if body is not None and method.upper() != "GET":
            request_headers["Content-Type"] = "application/json"
            data = body if isinstance(body, bytes) else json.dumps(body)

        raise_if_cancelled(signal, endpoint)
        logger.debug("Vault request %s %s", method, endpoint)
        try:
            response = self._adapter.request(
                method,
                f"/v1/{endpoint}",
                headers=request_headers,
                raise_exception=False,
                data=data,
            )
        except requests.exceptions.RequestException as exc:
            raise VaultTransportError(f"{method} {endpoint} failed: {exc}") from exc
        # The response is discarded if the caller gave up while it was in flight.
        raise_if_cancelled(signal, endpoint)

        return self._read_response(contract, response)

    def close(self) -> None:
        self._adapter.close()

    # -- private helpers -----------------------------------------------------

    @staticmethod
    def _read_response(contract: Contract | None, response: requests.Response) -> Any:
        if contract is None:
            if response.status_code != HTTPStatus.NO_CONTENT:
                raise HTTPError.from_response(response)
            return None

        if not response.ok:
            raise HTTPError.from_response(response)

        path = _url_path(response.url)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ResponseValidationError(path, "body is not valid JSON") from exc
        try:
            return parse_body(contract, payload)
        except pydantic.ValidationError as exc:
            raise ResponseValidationError(
                path, f"{exc.error_count()} validation error(s)"
            ) from exc


def _url_path(url: str | None) -> str:
    return urllib.parse.urlsplit(url or "").path


def _error_body(response: requests.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
