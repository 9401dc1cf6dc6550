"""CLI entry point: parse arguments, configure logging, load settings, dispatch."""

from __future__ import annotations

import argparse
import logging
import sys

from vault_session.settings import SettingsError, load_settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Vault session: leased token login, renewal and authenticated requests",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings.yaml (default: config/settings.yaml if present)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    lookup = commands.add_parser("lookup", help="Look up the session token or an accessor")
    lookup.add_argument("--accessor", default=None)

    renew = commands.add_parser("renew", help="Renew the session token or an accessor")
    renew.add_argument("--accessor", default=None)

    issue = commands.add_parser("issue", help="Create a child token")
    issue.add_argument("--role", default=None, help="Token role to create against")

    read = commands.add_parser("read", help="Read an arbitrary endpoint")
    read.add_argument("endpoint")
    read.add_argument("--method", default="GET", help="HTTP method, e.g. LIST")

    unwrap = commands.add_parser("unwrap", help="Unwrap a response-wrapping token")
    unwrap.add_argument("wrapping_token")
    unwrap.add_argument(
        "--creation-path",
        default=None,
        help="Refuse to unwrap unless the token was created by this endpoint",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    from vault_session.console.cli import console, run_cli

    try:
        config = load_settings(args.config)
    except SettingsError as exc:
        console.print(f"[red]Invalid settings:[/red] {exc}")
        sys.exit(1)

    sys.exit(run_cli(config, args))


if __name__ == "__main__":
    main()
