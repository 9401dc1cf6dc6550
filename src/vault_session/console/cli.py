"""Command implementations for the ``vault-session`` CLI.

Each command opens a session (login), performs one operation and closes it
again (logout, revoking the token if the settings ask for it).  Output is
rendered with Rich; nothing here knows about HTTP or lease renewal.
"""

from __future__ import annotations

import argparse
import logging
from typing import Any

from pydantic import BaseModel
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from vault_session.auth.credentials import SessionConfig
from vault_session.auth.session import VaultSession
from vault_session.vault.http import VaultClientError

logger = logging.getLogger(__name__)
console = Console()


def _print_result(result: Any) -> None:
    if isinstance(result, BaseModel):
        console.print_json(result.model_dump_json())
    else:
        console.print_json(data=result)


def _print_login(session: VaultSession) -> None:
    table = Table(title="Vault Session", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="bold")
    table.add_row("Address", session.config.address)
    table.add_row("Accessor", session.accessor or "(none)")
    table.add_row("Lease", f"{session.lease_duration}s")
    table.add_row("Revocable", str(session.revocable))
    renewal_delay = session.renewal.delay
    table.add_row("Renewal", f"every {renewal_delay}s" if renewal_delay else "disabled")
    console.print(table)


def _cmd_lookup(session: VaultSession, args: argparse.Namespace) -> None:
    _print_result(session.lookup(args.accessor))


def _cmd_renew(session: VaultSession, args: argparse.Namespace) -> None:
    renewed = session.renew_token(args.accessor)
    console.print(
        f"  [green]Renewed[/green] accessor={renewed.accessor} "
        f"lease={renewed.lease_duration}s"
    )


def _cmd_issue(session: VaultSession, args: argparse.Namespace) -> None:
    issued = session.issue_token(args.role)
    console.print(
        Panel(
            f"[bold]{issued.client_token}[/bold]\n"
            f"accessor={issued.accessor}  lease={issued.lease_duration}s",
            title="Issued token",
            border_style="green",
        )
    )


def _cmd_read(session: VaultSession, args: argparse.Namespace) -> None:
    _print_result(session.read(dict[str, Any], args.endpoint, method=args.method))


def _cmd_unwrap(session: VaultSession, args: argparse.Namespace) -> None:
    _print_result(session.unwrap(dict[str, Any], args.wrapping_token, args.creation_path))


COMMANDS = {
    "lookup": _cmd_lookup,
    "renew": _cmd_renew,
    "issue": _cmd_issue,
    "read": _cmd_read,
    "unwrap": _cmd_unwrap,
}

# Commands that only need the transport, not a logged-in token.
_NO_LOGIN = frozenset(["unwrap"])


def run_cli(config: SessionConfig, args: argparse.Namespace) -> int:
    """Run the command selected in *args*; returns the process exit status."""
    command = COMMANDS[args.command]
    session = VaultSession(config)

    try:
        if args.command in _NO_LOGIN:
            command(session, args)
            return 0

        with session:
            _print_login(session)
            command(session, args)
    except VaultClientError as exc:
        console.print(f"[red]{args.command} failed:[/red] {exc}")
        logger.debug("Command %s failed", args.command, exc_info=True)
        return 1
    finally:
        session.close()
    return 0
