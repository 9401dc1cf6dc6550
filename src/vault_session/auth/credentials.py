"""Credential kinds accepted by ``VaultSession.login``.

Pattern: Closed Credential Union
---------------------------------
Each way of proving identity to Vault is its own frozen dataclass, and
``Credentials`` is the union of all of them.  The authenticator matches on the
concrete class, so adding a kind means adding a class here *and* a branch
there.  There is no registry to plug into: the login request looks different
for every kind, so a new kind always needs new code anyway.
"""

from __future__ import annotations

import dataclasses


@dataclasses.dataclass(frozen=True)
class TokenCredentials:
    """A pre-issued Vault token.

    Attributes:
        token:         The token value.
        logout_revoke: Revoke the token on ``logout()``.
    """

    token: str = dataclasses.field(repr=False)
    logout_revoke: bool = False
    mountpoint: str = dataclasses.field(default="auth/token", init=False)


@dataclasses.dataclass(frozen=True)
class AppRoleCredentials:
    """An AppRole role id, plus a secret id unless the role is bound without one.

    Attributes:
        role_id:       AppRole role identifier.
        secret_id:     AppRole secret identifier, ``None`` when
                       ``bind_secret_id`` is disabled on the role.
        mountpoint:    Where the AppRole auth method is mounted.
        logout_revoke: Revoke the issued token on ``logout()``.
    """

    role_id: str
    secret_id: str | None = dataclasses.field(default=None, repr=False)
    mountpoint: str = "auth/approle"
    logout_revoke: bool = False


Credentials = TokenCredentials | AppRoleCredentials


@dataclasses.dataclass(frozen=True)
class SessionConfig:
    """Everything needed to open a session against one Vault server.

    Attributes:
        address:        Base URL of the Vault server.
        credentials:    How to log in.
        namespace:      Vault Enterprise namespace, if any.
        enable_renewal: Arm the background lease renewal after login.
        timeout:        Per-request timeout in seconds.
        verify:         TLS verification flag or CA bundle path.
    """

    address: str
    credentials: Credentials
    namespace: str | None = None
    enable_renewal: bool = True
    timeout: float = 30
    verify: bool | str = True
