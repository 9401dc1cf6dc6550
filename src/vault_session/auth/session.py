"""Authenticated session against a Vault server.

Pattern: Session Supervisor
----------------------------
A ``VaultSession`` owns one token at a time.  ``login()`` obtains it,
``logout()`` drops it, and in between every request operation (lookup,
renew, issue, read, write) is sent with it through the shared
``VaultTransport``.  While the token is held and renewable, a
``RenewalScheduler`` keeps its lease alive in the background.

The mutable fields (token, accessor, lease duration, revocable) are written
from two places: the caller's thread and the renewal thread.  Every write
goes through ``self._lock``, and a renewal result is only applied if the
session still holds the token that was renewed, so a renewal finishing after
``logout()`` or a re-login is silently dropped.

Callers must not run ``login``/``logout`` concurrently with each other or
with outstanding requests on the same session.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Any

from vault_session.auth.credentials import AppRoleCredentials, SessionConfig
from vault_session.auth.renewal import RenewalScheduler
from vault_session.auth.vault_authenticator import (
    LoginResult,
    UnsupportedCredentialKindError,
    VaultAuthenticator,
)
from vault_session.vault.contracts import (
    Contract,
    LoginResponse,
    TokenLookupResponse,
    WrappingLookupResponse,
)
from vault_session.vault.http import VaultClientError, VaultTransport

logger = logging.getLogger(__name__)


class UnauthenticatedError(VaultClientError):
    """Raised when an operation needs a token and the session holds none."""


class CreationPathMismatchError(VaultClientError):
    """Raised when a wrapping token was not created by the expected endpoint."""

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected creation path '{expected}', got '{actual}'")


@dataclasses.dataclass(frozen=True)
class RenewedToken:
    accessor: str | None
    lease_duration: int


@dataclasses.dataclass(frozen=True)
class IssuedToken:
    client_token: str = dataclasses.field(repr=False)
    accessor: str | None
    lease_duration: int


class VaultSession:
    """Login, lease renewal and authenticated requests for one Vault identity."""

    def __init__(self, config: SessionConfig, *, transport: VaultTransport | None = None) -> None:
        self._config = config
        self._transport = transport or VaultTransport(
            config.address,
            config.namespace,
            timeout=config.timeout,
            verify=config.verify,
        )
        self._authenticator = VaultAuthenticator(self._transport)
        self._lock = threading.Lock()
        self._token: str | None = None
        self._accessor: str | None = None
        self._lease_duration = 0
        self._revocable = False
        self._renewal = RenewalScheduler(self._renew_for_scheduler)

    def __enter__(self) -> VaultSession:
        self.login()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.logout()

    def __str__(self) -> str:
        return (
            f"VaultSession(address={self._config.address}, "
            f"authenticated={self.is_authenticated}, accessor={self._accessor})"
        )

    # -- state ----------------------------------------------------------------

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def token(self) -> str:
        return self._require_token()

    @property
    def accessor(self) -> str | None:
        """Accessor of the current token; ``None`` for batch tokens."""
        self._require_token()
        return self._accessor

    @property
    def lease_duration(self) -> int:
        return self._lease_duration

    @property
    def revocable(self) -> bool:
        return self._revocable

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    @property
    def renewal(self) -> RenewalScheduler:
        return self._renewal

    # -- lifecycle --------------------------------------------------------------

    def login(self, *, signal: threading.Event | None = None) -> LoginResult:
        """Log in with the configured credentials.

        Session state is replaced only once the whole exchange succeeded; a
        failed login leaves any previous token, accessor and lease in place.
        """
        result = self._authenticator.login(self._config.credentials, signal)

        self._renewal.cancel()
        with self._lock:
            self._token = result.client_token
            self._accessor = result.accessor
            self._lease_duration = result.lease_duration
            self._revocable = result.revocable

        if result.needs_renewal and self._config.enable_renewal:
            self._renewal.arm(result.lease_duration)
        return result

    def approle_login(self, *, signal: threading.Event | None = None) -> LoginResult:
        """Run the AppRole exchange without adopting the resulting token."""
        credentials = self._config.credentials
        if not isinstance(credentials, AppRoleCredentials):
            raise UnsupportedCredentialKindError(
                f"approle_login cannot be used with {type(credentials).__name__}"
            )
        return self._authenticator.login_approle(credentials, signal)

    def logout(self, *, revoke_hard_fail: bool = False) -> None:
        """Stop renewing and forget the token, revoking it first if configured.

        A failed revocation is logged and ignored unless *revoke_hard_fail* is
        set.  The token is forgotten either way.  Safe to call before login.
        """
        self._renewal.cancel()

        with self._lock:
            token = self._token
            revocable = self._revocable
        if token is None:
            return

        try:
            if self._config.credentials.logout_revoke and revocable:
                self._revoke_self(token, revoke_hard_fail)
        finally:
            with self._lock:
                self._token = None
                self._accessor = None
                self._lease_duration = 0
                self._revocable = False
            logger.info("Logged out of %s", self._config.address)

    def close(self) -> None:
        self.logout()
        self._transport.close()

    # -- token operations ---------------------------------------------------------

    def lookup(
        self,
        accessor: str | None = None,
        *,
        signal: threading.Event | None = None,
    ) -> TokenLookupResponse:
        token = self._require_token()
        return self._authenticator.lookup(token, accessor, signal)

    def renew_token(
        self,
        accessor: str | None = None,
        *,
        signal: threading.Event | None = None,
    ) -> RenewedToken:
        """Renew the session token, or the token behind *accessor*.

        Renewing the session's own token also refreshes its accessor and
        lease duration.
        """
        token = self._require_token()
        if accessor:
            endpoint, body = "auth/token/renew-accessor", {"accessor": accessor}
        else:
            endpoint, body = "auth/token/renew-self", None

        auth = self._transport.fetch(
            LoginResponse,
            endpoint,
            method="POST",
            token=token,
            body=body,
            signal=signal,
        ).auth
        renewed = RenewedToken(accessor=auth.accessor or None, lease_duration=auth.lease_duration)

        if not accessor:
            with self._lock:
                if self._token == token:
                    self._accessor = renewed.accessor
                    self._lease_duration = renewed.lease_duration
        return renewed

    def issue_token(
        self,
        role: str | None = None,
        *,
        signal: threading.Event | None = None,
    ) -> IssuedToken:
        """Create a child token, optionally against a token role."""
        token = self._require_token()
        endpoint = f"auth/token/create/{role}" if role else "auth/token/create"
        auth = self._transport.fetch(
            LoginResponse,
            endpoint,
            method="POST",
            token=token,
            signal=signal,
        ).auth
        return IssuedToken(
            client_token=auth.client_token,
            accessor=auth.accessor or None,
            lease_duration=auth.lease_duration,
        )

    # -- generic requests -----------------------------------------------------------

    def read(
        self,
        contract: Contract | None,
        endpoint: str,
        *,
        method: str = "GET",
        wrap_ttl: int | str | None = None,
        signal: threading.Event | None = None,
    ) -> Any:
        token = self._require_token()
        return self._transport.fetch(
            contract,
            endpoint,
            method=method,
            token=token,
            headers=_wrap_headers(wrap_ttl),
            signal=signal,
        )

    def write(
        self,
        contract: Contract | None,
        endpoint: str,
        body: Any = None,
        *,
        method: str = "POST",
        wrap_ttl: int | str | None = None,
        signal: threading.Event | None = None,
    ) -> Any:
        """Send *body* to *endpoint*.

        With ``contract=None`` the server must answer 204 No Content.
        """
        token = self._require_token()
        return self._transport.fetch(
            contract,
            endpoint,
            method=method,
            token=token,
            body=body,
            headers=_wrap_headers(wrap_ttl),
            signal=signal,
        )

    def unwrap(
        self,
        contract: Contract,
        wrapping_token: str,
        expected_creation_path: str | None = None,
        *,
        signal: threading.Event | None = None,
    ) -> Any:
        """Exchange a single-use wrapping token for the payload it wraps.

        When *expected_creation_path* is given, the wrapping token is looked
        up first and must have been created by exactly that endpoint.  Neither
        call is retried: once unwrapped (or failed), the token is spent.  Does
        not use the session token, so it works before ``login()``.
        """
        if expected_creation_path:
            lookup = self._transport.fetch(
                WrappingLookupResponse,
                "sys/wrapping/lookup",
                method="POST",
                token=wrapping_token,
                body={"token": wrapping_token},
                signal=signal,
            )
            if lookup.data.creation_path != expected_creation_path:
                raise CreationPathMismatchError(expected_creation_path, lookup.data.creation_path)

        return self._transport.fetch(
            contract,
            "sys/wrapping/unwrap",
            method="POST",
            token=wrapping_token,
            signal=signal,
        )

    # -- private helpers -----------------------------------------------------------

    def _require_token(self) -> str:
        token = self._token
        if token is None:
            raise UnauthenticatedError("No valid token available, call login() first")
        return token

    def _renew_for_scheduler(self) -> int:
        return self.renew_token().lease_duration

    def _revoke_self(self, token: str, hard_fail: bool) -> None:
        try:
            self._transport.fetch(None, "auth/token/revoke-self", method="POST", token=token)
        except VaultClientError as exc:
            if hard_fail:
                raise
            logger.warning("Failed to revoke token on logout: %s", exc)
            return
        logger.info("Revoked token accessor=%s", self._accessor)


def _wrap_headers(wrap_ttl: int | str | None) -> dict[str, str]:
    if wrap_ttl:
        return {"X-Vault-Wrap-TTL": str(wrap_ttl)}
    return {}
