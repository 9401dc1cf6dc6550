"""Tests for the vault-session command line."""

from __future__ import annotations

import pathlib
from unittest.mock import patch

import pytest

from conftest import FakeVaultAdapter, auth_payload, lookup_payload
from vault_session.auth.credentials import SessionConfig
from vault_session.console.cli import run_cli
from vault_session.main import _build_parser, main
from vault_session.vault.http import VaultTransport


@pytest.fixture
def patched_transport(transport: VaultTransport):
    with patch("vault_session.auth.session.VaultTransport", return_value=transport):
        yield transport


def _run(config: SessionConfig, *argv: str) -> int:
    return run_cli(config, _build_parser().parse_args(list(argv)))


class TestParser:
    def test_read_defaults(self) -> None:
        args = _build_parser().parse_args(["read", "kv/foo"])
        assert args.command == "read"
        assert args.endpoint == "kv/foo"
        assert args.method == "GET"
        assert args.config is None

    def test_unwrap_options(self) -> None:
        args = _build_parser().parse_args(
            ["--config", "s.yaml", "unwrap", "hvs.w", "--creation-path", "auth/token/create"]
        )
        assert args.wrapping_token == "hvs.w"
        assert args.creation_path == "auth/token/create"
        assert args.config == "s.yaml"

    def test_command_is_required(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args([])


class TestRunCli:
    def test_lookup_logs_in_and_revokes_on_exit(
        self, approle_config: SessionConfig, adapter: FakeVaultAdapter, patched_transport: VaultTransport
    ) -> None:
        adapter.add("POST", "auth/approle/login", body=auth_payload())
        adapter.add("GET", "auth/token/lookup-self", body=lookup_payload(accessor="accessor-1"))
        adapter.add("POST", "auth/token/revoke-self", status=204)

        assert _run(approle_config, "lookup") == 0

        assert [call.url for call in adapter.calls] == [
            "/v1/auth/approle/login",
            "/v1/auth/token/lookup-self",
            "/v1/auth/token/revoke-self",
        ]
        assert adapter.closed

    def test_read_with_method(
        self, approle_config: SessionConfig, adapter: FakeVaultAdapter, patched_transport: VaultTransport
    ) -> None:
        adapter.add("POST", "auth/approle/login", body=auth_payload())
        adapter.add("LIST", "kv/metadata", body={"data": {"keys": ["a"]}})
        adapter.add("POST", "auth/token/revoke-self", status=204)

        assert _run(approle_config, "read", "kv/metadata", "--method", "LIST") == 0
        assert adapter.calls_to("kv/metadata")[0].method == "LIST"

    def test_unwrap_skips_login(
        self, approle_config: SessionConfig, adapter: FakeVaultAdapter, patched_transport: VaultTransport
    ) -> None:
        adapter.add("POST", "sys/wrapping/unwrap", body={"data": {"secret_id": "s-1"}})

        assert _run(approle_config, "unwrap", "hvs.w") == 0
        assert [call.url for call in adapter.calls] == ["/v1/sys/wrapping/unwrap"]

    def test_vault_error_returns_failure(
        self, approle_config: SessionConfig, adapter: FakeVaultAdapter, patched_transport: VaultTransport
    ) -> None:
        adapter.add("POST", "auth/approle/login", status=400, body={"errors": ["invalid role id"]})

        assert _run(approle_config, "lookup") == 1
        assert adapter.calls_to("auth/token/revoke-self") == []
        assert adapter.closed


class TestMain:
    def test_invalid_settings_exit_with_error(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(SystemExit) as excinfo:
            main(["--config", str(tmp_path / "missing.yaml"), "lookup"])
        assert excinfo.value.code == 1

    def test_dispatches_to_run_cli(self, approle_config: SessionConfig) -> None:
        with (
            patch("vault_session.main.load_settings", return_value=approle_config),
            patch("vault_session.console.cli.run_cli", return_value=0) as run,
            pytest.raises(SystemExit) as excinfo,
        ):
            main(["issue", "--role", "ci"])

        assert excinfo.value.code == 0
        config, args = run.call_args.args
        assert config is approle_config
        assert args.role == "ci"
