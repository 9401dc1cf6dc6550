"""Load a ``SessionConfig`` from ``config/settings.yaml`` and the environment.

The YAML file holds the non-secret defaults for a deployment.  The usual
``VAULT_*`` variables override it, which is also how secrets (tokens,
secret ids) are expected to arrive in practice.
"""

from __future__ import annotations

import os
import pathlib
from typing import Any, Mapping

import yaml

from vault_session.auth.credentials import (
    AppRoleCredentials,
    Credentials,
    SessionConfig,
    TokenCredentials,
)

DEFAULT_SETTINGS_PATH = pathlib.Path(__file__).resolve().parents[2] / "config" / "settings.yaml"
DEFAULT_VAULT_ADDR = "http://127.0.0.1:8200"


class SettingsError(Exception):
    """Raised when the settings file or environment is incomplete or malformed."""


def load_settings(
    path: str | pathlib.Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> SessionConfig:
    """Build the session configuration.

    An explicit *path* must exist.  Without one, ``config/settings.yaml`` is
    used when present and the environment alone otherwise.
    """
    env = os.environ if environ is None else environ
    vault_cfg = _load_vault_block(path)
    auth_cfg: dict[str, Any] = dict(vault_cfg.get("auth") or {})

    return SessionConfig(
        address=env.get("VAULT_ADDR") or vault_cfg.get("address") or DEFAULT_VAULT_ADDR,
        namespace=env.get("VAULT_NAMESPACE") or vault_cfg.get("namespace"),
        credentials=_build_credentials(auth_cfg, env),
        enable_renewal=bool(vault_cfg.get("enable_renewal", True)),
        timeout=float(vault_cfg.get("timeout", 30)),
        verify=vault_cfg.get("verify", True),
    )


# -- private helpers -----------------------------------------------------------


def _load_vault_block(path: str | pathlib.Path | None) -> dict[str, Any]:
    if path is None:
        settings_path = DEFAULT_SETTINGS_PATH
        if not settings_path.exists():
            return {}
    else:
        settings_path = pathlib.Path(path)
        if not settings_path.exists():
            raise SettingsError(f"Settings file not found: {settings_path}")

    with open(settings_path) as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise SettingsError("Settings file must contain a mapping")
    vault_cfg = data.get("vault", {})
    if not isinstance(vault_cfg, dict):
        raise SettingsError("'vault' section must be a mapping")
    return vault_cfg


def _build_credentials(auth_cfg: dict[str, Any], env: Mapping[str, str]) -> Credentials:
    method = env.get("VAULT_AUTH_METHOD") or auth_cfg.get("method")
    if method is None:
        method = "approle" if env.get("VAULT_ROLE_ID") or auth_cfg.get("role_id") else "token"
    logout_revoke = bool(auth_cfg.get("logout_revoke", False))

    if method == "token":
        token = env.get("VAULT_TOKEN") or auth_cfg.get("token")
        if not token:
            raise SettingsError("Token authentication requires VAULT_TOKEN or vault.auth.token")
        return TokenCredentials(token=token, logout_revoke=logout_revoke)

    if method == "approle":
        role_id = env.get("VAULT_ROLE_ID") or auth_cfg.get("role_id")
        if not role_id:
            raise SettingsError("AppRole authentication requires VAULT_ROLE_ID or vault.auth.role_id")
        return AppRoleCredentials(
            role_id=role_id,
            secret_id=env.get("VAULT_SECRET_ID") or auth_cfg.get("secret_id"),
            mountpoint=auth_cfg.get("mountpoint", "auth/approle"),
            logout_revoke=logout_revoke,
        )

    raise SettingsError(f"Unsupported auth method: {method}")
