"""Exchange long-lived credentials for a leased Vault token.

Pattern: Login Strategy per Credential Kind
--------------------------------------------
Both supported kinds end in the same place, a ``LoginResult`` describing the
token and its lease, but they get there differently:

  - **token**: the token is already known.  A ``lookup-self`` call discovers
    its accessor, remaining TTL, renewability and type.
  - **approle**: the role id and secret id are POSTed to
    ``<mountpoint>/login`` without any token, and the ``auth`` block of the
    response describes the freshly issued token.

The authenticator never touches session state.  ``VaultSession`` applies the
result only once the exchange has fully succeeded.
"""

from __future__ import annotations

import dataclasses
import logging
import threading

from vault_session.auth.credentials import (
    AppRoleCredentials,
    Credentials,
    TokenCredentials,
)
from vault_session.vault.contracts import LoginResponse, TokenLookupResponse
from vault_session.vault.http import VaultClientError, VaultTransport

logger = logging.getLogger(__name__)


class UnsupportedCredentialKindError(VaultClientError):
    """Raised when credentials of an unknown kind are passed to ``login``."""


@dataclasses.dataclass(frozen=True)
class LoginResult:
    """The token and lease produced by a successful login.

    Attributes:
        client_token:   The access token.
        accessor:       Token accessor, ``None`` for batch tokens.
        lease_duration: Remaining validity in seconds, 0 for non-expiring.
        renewable:      Whether the lease can be extended.
        token_type:     ``"service"`` or ``"batch"``.
    """

    client_token: str = dataclasses.field(repr=False)
    accessor: str | None
    lease_duration: int
    renewable: bool
    token_type: str

    @property
    def revocable(self) -> bool:
        return self.token_type == "service"

    @property
    def needs_renewal(self) -> bool:
        return self.renewable and bool(self.accessor) and self.lease_duration > 0


class VaultAuthenticator:
    """Runs the login exchange for one kind of credentials."""

    def __init__(self, transport: VaultTransport) -> None:
        self._transport = transport

    def login(
        self,
        credentials: Credentials,
        signal: threading.Event | None = None,
    ) -> LoginResult:
        """Exchange *credentials* for a token.

        Raises ``UnsupportedCredentialKindError`` for unknown kinds; transport
        and validation errors propagate unchanged.
        """
        match credentials:
            case TokenCredentials():
                result = self._login_token(credentials, signal)
            case AppRoleCredentials():
                result = self.login_approle(credentials, signal)
            case _:
                raise UnsupportedCredentialKindError(
                    f"Unsupported authentication type {type(credentials).__name__!r}"
                )

        logger.info(
            "Logged in via %s: accessor=%s, lease_duration=%ss, renewable=%s, type=%s",
            credentials.mountpoint,
            result.accessor,
            result.lease_duration,
            result.renewable,
            result.token_type,
        )
        return result

    def login_approle(
        self,
        credentials: AppRoleCredentials,
        signal: threading.Event | None = None,
    ) -> LoginResult:
        body = {"role_id": credentials.role_id}
        if credentials.secret_id is not None:
            body["secret_id"] = credentials.secret_id

        response = self._transport.fetch(
            LoginResponse,
            f"{credentials.mountpoint}/login",
            method="POST",
            body=body,
            signal=signal,
        )
        auth = response.auth
        return LoginResult(
            client_token=auth.client_token,
            accessor=auth.accessor or None,
            lease_duration=auth.lease_duration,
            renewable=auth.renewable,
            token_type=auth.token_type,
        )

    def lookup(
        self,
        token: str,
        accessor: str | None = None,
        signal: threading.Event | None = None,
    ) -> TokenLookupResponse:
        """Look up *token* itself, or the token behind *accessor*."""
        if accessor:
            return self._transport.fetch(
                TokenLookupResponse,
                "auth/token/lookup-accessor",
                method="POST",
                token=token,
                body={"accessor": accessor},
                signal=signal,
            )
        return self._transport.fetch(
            TokenLookupResponse,
            "auth/token/lookup-self",
            method="GET",
            token=token,
            signal=signal,
        )

    # -- private helpers -----------------------------------------------------

    def _login_token(
        self,
        credentials: TokenCredentials,
        signal: threading.Event | None,
    ) -> LoginResult:
        data = self.lookup(credentials.token, signal=signal).data
        return LoginResult(
            client_token=credentials.token,
            accessor=data.accessor or None,
            lease_duration=data.ttl,
            renewable=data.renewable,
            token_type=data.type,
        )
