"""Secrets synchronisation routines."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from rich.console import Console
from rich.text import Text

from .backends import (
    ClusterAdapter,
    ClusterError,
    SecretNotFound,
    VaultAdapter,
    VaultError,
    build_cluster,
    build_vault,
)
from .config import SelectionStrategy, SyncConfig
from .models import ClusterSecret, SecretItem
from .timestamps import EPOCH_FALLBACK, to_epoch
from .utils import logbook

_MARKER_STYLES = {"..": "dim", "!!": "bold red", "ok": "bold green"}


class ItemStatus(str, Enum):
    APPLIED = "applied"
    DRY_RUN = "dry_run"
    UP_TO_DATE = "up_to_date"
    SKIPPED = "skipped"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass(slots=True)
class ItemResult:
    title: str
    namespace: str
    status: ItemStatus
    detail: str = ""


@dataclass(slots=True)
class SyncReport:
    """Aggregate outcome of one sync run."""

    namespace: str
    strategy: SelectionStrategy
    results: List[ItemResult] = field(default_factory=list)
    error: Optional[str] = None

    def counts(self) -> Dict[str, int]:
        totals = {status.value: 0 for status in ItemStatus}
        for result in self.results:
            totals[result.status.value] += 1
        return totals

    @property
    def failures(self) -> List[ItemResult]:
        return [result for result in self.results if result.status is ItemStatus.FAILED]

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failures


class SecretSyncer:
    """Reconcile vault items with the secrets of one cluster namespace."""

    def __init__(
        self,
        config: SyncConfig,
        vault: VaultAdapter,
        cluster: ClusterAdapter,
        console: Optional[Console] = None,
    ) -> None:
        self.config = config
        self.vault = vault
        self.cluster = cluster
        self.console = console or Console(highlight=False)

    # -- output -----------------------------------------------------------
    def _status(self, marker: str, message: str) -> None:
        line = Text.assemble((f"[{marker}]", _MARKER_STYLES.get(marker, "")), " ", message)
        self.console.print(line)

    def _record(self, result: ItemResult) -> ItemResult:
        logbook.info(
            {
                "action": "sync_item",
                "vault": self.config.vault,
                "item": result.title,
                "namespace": result.namespace,
                "status": result.status.value,
                "detail": result.detail,
            }
        )
        return result

    # -- decision ---------------------------------------------------------
    def needs_update(self, name: str, namespace: str, source_updated_at: Optional[str]) -> bool:
        """Return ``True`` unless the cluster secret is provably at least as new as the item.

        Every ambiguous condition (missing secret, unreadable creation time,
        unparsable or missing timestamps) resolves toward recreation.
        """

        try:
            created = self.cluster.get_creation_timestamp(name, namespace)
        except SecretNotFound:
            self._status("..", "does not exist, creating")
            return True
        except ClusterError:
            self._status("!!", "could not get creation time, recreating")
            return True
        if not created:
            self._status("!!", "could not get creation time, recreating")
            return True

        source_epoch = to_epoch(source_updated_at)
        cluster_epoch = to_epoch(created)
        if source_epoch is None or cluster_epoch is None:
            self._status("!!", "could not parse timestamps, recreating")
            return True

        if source_epoch > cluster_epoch:
            self._status("..", "item is newer, recreating")
            return True
        self._status("..", "item is up to date, skipping")
        return False

    # -- materialisation --------------------------------------------------
    def materialize(self, item: SecretItem, namespace: str) -> ItemResult:
        """Fully (re)declare the secret for *item* in *namespace*."""

        secret = ClusterSecret.from_item(item, namespace)
        if not secret.data:
            self._status("!!", "no fields, skipping")
            return ItemResult(item.title, namespace, ItemStatus.SKIPPED, "no fields")

        keys = ", ".join(sorted(secret.data))
        if self.config.dry_run:
            self._status("..", f"dry run: would apply secret {item.title} in namespace {namespace} ({keys})")
            return ItemResult(item.title, namespace, ItemStatus.DRY_RUN, keys)

        try:
            self.cluster.apply_secret(secret)
        except ClusterError as exc:
            self._status("!!", f"failed to apply secret {item.title} in namespace {namespace}")
            return ItemResult(item.title, namespace, ItemStatus.FAILED, str(exc))
        self._status("ok", f"successfully applied secret {item.title} in namespace {namespace}")
        return ItemResult(item.title, namespace, ItemStatus.APPLIED, keys)

    # -- driver -----------------------------------------------------------
    def sync_item(self, summary: SecretItem) -> ItemResult:
        namespace = self.config.namespace
        self._status("..", f"item: {summary.title}")

        try:
            item = self.vault.get_item(summary.ref, self.config.vault)
        except VaultError as exc:
            self._status("!!", "could not retrieve content, skipping")
            return ItemResult(summary.title, namespace, ItemStatus.FAILED, str(exc))

        if self.config.strategy is SelectionStrategy.TAG_FAN_OUT:
            if not item.tags:
                self._status("!!", "no namespaces, skipping")
                return ItemResult(item.title, namespace, ItemStatus.SKIPPED, "no namespaces")
            # duplicate or additional tags never cause a second pass
            if namespace not in item.tags:
                return ItemResult(item.title, namespace, ItemStatus.IGNORED, "not tagged for namespace")

        if item.updated_at is None:
            self._status("!!", f"could not get timestamp, recreating (assuming {EPOCH_FALLBACK})")

        if not self.needs_update(item.title, namespace, item.updated_at):
            return ItemResult(item.title, namespace, ItemStatus.UP_TO_DATE)
        return self.materialize(item, namespace)

    def run(self) -> SyncReport:
        """Sync every candidate item sequentially; one item's failure never stops the run."""

        namespace = self.config.namespace
        report = SyncReport(namespace=namespace, strategy=self.config.strategy)

        if self.config.ensure_namespace and not self.config.dry_run:
            try:
                if self.cluster.ensure_namespace(namespace):
                    self._status("ok", f"created namespace {namespace}")
            except ClusterError as exc:
                self._status("!!", f"could not ensure namespace {namespace}")
                report.error = str(exc)
                self._log_run(report)
                return report

        tag = namespace if self.config.strategy is SelectionStrategy.NAMESPACE_FILTERED_LIST else None
        try:
            summaries = self.vault.list_items(self.config.vault, tag=tag)
        except VaultError as exc:
            self._status("!!", f"could not list items in vault {self.config.vault}")
            report.error = str(exc)
            self._log_run(report)
            return report

        for summary in summaries:
            report.results.append(self._record(self.sync_item(summary)))
        self._log_run(report)
        return report

    def _log_run(self, report: SyncReport) -> None:
        logbook.info(
            {
                "action": "sync_run",
                "vault": self.config.vault,
                "namespace": report.namespace,
                "strategy": report.strategy.value,
                "dry_run": self.config.dry_run,
                "counts": report.counts(),
                "error": report.error,
            }
        )


def load_syncer(config: SyncConfig, console: Optional[Console] = None) -> SecretSyncer:
    return SecretSyncer(config, build_vault(config), build_cluster(config), console=console)


__all__ = ["ItemResult", "ItemStatus", "SecretSyncer", "SyncReport", "load_syncer"]
