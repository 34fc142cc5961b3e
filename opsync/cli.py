"""Command line entry point for opsync."""

from __future__ import annotations

import argparse
import getpass
import sys
from typing import Optional, Sequence

from keyring.errors import KeyringError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .backends import ClusterError
from .config import BACKENDS, ConfigError, SelectionStrategy, load_config
from .sync import SyncReport, load_syncer
from .utils.credentials import store_service_account_token

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_USAGE = 2


class _VersionAction(argparse.Action):
    def __init__(self, option_strings, dest, **kwargs) -> None:
        super().__init__(option_strings, dest, nargs=0, default=argparse.SUPPRESS, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None) -> None:
        print(f"opsync {__version__}")
        parser.exit(EXIT_OK)


class _StoreTokenAction(argparse.Action):
    """Prompt for the service account token, save it to the keyring and exit."""

    def __init__(self, option_strings, dest, **kwargs) -> None:
        super().__init__(option_strings, dest, nargs=0, default=argparse.SUPPRESS, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None) -> None:
        token = getpass.getpass("1Password service account token: ").strip()
        if not token:
            parser.exit(EXIT_USAGE, "opsync: error: no token entered\n")
        try:
            store_service_account_token(token)
        except KeyringError as exc:
            parser.exit(EXIT_FAILURES, f"opsync: error: could not store token: {exc}\n")
        print("Service account token stored in the system keyring")
        parser.exit(EXIT_OK)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="opsync",
        description="Deploy secrets to the specified namespace only",
    )
    parser.add_argument("--version", action=_VersionAction, help="Display version information and exit")
    parser.add_argument(
        "--store-token",
        action=_StoreTokenAction,
        help="Save the 1Password service account token to the system keyring and exit",
    )
    parser.add_argument("namespace", help="Target namespace; only items tagged with it are synced")
    parser.add_argument("--vault", default=None, help="1Password vault to read (default: $OPSYNC_VAULT or homelab)")
    parser.add_argument(
        "--strategy",
        choices=[member.value for member in SelectionStrategy],
        default=None,
        help="How candidate items are selected (default: $OPSYNC_STRATEGY or tag-fan-out)",
    )
    parser.add_argument("--backend", choices=BACKENDS, default=None, help="Cluster backend (default: kubectl)")
    parser.add_argument("--context", default=None, help="Kubeconfig context to target")
    parser.add_argument("--timeout", type=float, default=None, help="Per-call timeout in seconds")
    parser.add_argument("--dry-run", action="store_true", default=None, help="Report changes without applying them")
    parser.add_argument(
        "--ensure-namespace",
        action="store_true",
        default=None,
        help="Create the namespace first when it does not exist",
    )
    return parser


def _render_summary(console: Console, report: SyncReport) -> None:
    table = Table(title=f"opsync: {report.namespace} ({report.strategy.value})")
    table.add_column("Status")
    table.add_column("Items", justify="right")
    for status, count in report.counts().items():
        if count:
            table.add_row(status, str(count))
    console.print(table)
    for failure in report.failures:
        console.print(f"[red]failed[/] {escape(failure.title)}: {escape(failure.detail)}")
    if report.error:
        console.print(f"[red]aborted[/]: {escape(report.error)}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    console = Console(highlight=False)

    try:
        config = load_config(
            args.namespace,
            vault=args.vault,
            strategy=args.strategy,
            backend=args.backend,
            context=args.context,
            timeout=args.timeout,
            dry_run=args.dry_run,
            ensure_namespace=args.ensure_namespace,
        )
    except ConfigError as exc:
        parser.print_usage(sys.stderr)
        print(f"opsync: error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    try:
        syncer = load_syncer(config, console=console)
    except ClusterError as exc:
        print(f"opsync: error: {exc}", file=sys.stderr)
        return EXIT_FAILURES

    report = syncer.run()
    _render_summary(console, report)
    return EXIT_OK if report.ok else EXIT_FAILURES


__all__ = ["main"]
