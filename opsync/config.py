"""Run configuration resolved from ``.env``, the environment and CLI flags."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv

VAULT_ENV = "OPSYNC_VAULT"
STRATEGY_ENV = "OPSYNC_STRATEGY"
BACKEND_ENV = "OPSYNC_BACKEND"
CONTEXT_ENV = "OPSYNC_CONTEXT"
TIMEOUT_ENV = "OPSYNC_TIMEOUT"
OP_BIN_ENV = "OPSYNC_OP_BIN"
KUBECTL_BIN_ENV = "OPSYNC_KUBECTL_BIN"

DEFAULT_VAULT = "homelab"
DEFAULT_TIMEOUT = 30.0
BACKENDS = ("kubectl", "api")


class ConfigError(ValueError):
    """Raised when configuration values cannot be interpreted."""


class SelectionStrategy(str, Enum):
    """How candidate vault items are chosen for a namespace."""

    NAMESPACE_FILTERED_LIST = "namespace-filtered-list"
    TAG_FAN_OUT = "tag-fan-out"

    @classmethod
    def parse(cls, value: str) -> "SelectionStrategy":
        normalised = value.strip().lower().replace("_", "-")
        for member in cls:
            if member.value == normalised:
                return member
        choices = ", ".join(member.value for member in cls)
        raise ConfigError(f"Unknown selection strategy {value!r} (expected one of: {choices})")


@dataclass(frozen=True)
class SyncConfig:
    """Everything a sync run needs, passed explicitly to the driver."""

    namespace: str
    vault: str = DEFAULT_VAULT
    strategy: SelectionStrategy = SelectionStrategy.TAG_FAN_OUT
    backend: str = "kubectl"
    context: Optional[str] = None
    dry_run: bool = False
    ensure_namespace: bool = False
    timeout: float = DEFAULT_TIMEOUT
    op_binary: str = "op"
    kubectl_binary: str = "kubectl"

    def __post_init__(self) -> None:
        if not self.namespace or not self.namespace.strip():
            raise ConfigError("A target namespace is required")
        if not self.vault:
            raise ConfigError("A vault name is required")
        if self.backend not in BACKENDS:
            raise ConfigError(f"Unknown cluster backend {self.backend!r} (expected one of: {', '.join(BACKENDS)})")
        if self.timeout <= 0:
            raise ConfigError("Timeout must be a positive number of seconds")


def _timeout_from_env() -> float:
    raw = os.getenv(TIMEOUT_ENV)
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{TIMEOUT_ENV} must be a number, got {raw!r}") from exc


def load_config(namespace: str, *, env_file: Optional[Path] = None, **overrides: Any) -> SyncConfig:
    """Build a :class:`SyncConfig` for *namespace*.

    Values are taken from ``.env`` (without overriding variables that are
    already set), then the process environment. Keyword *overrides* whose
    value is not ``None`` win over both.
    """

    load_dotenv(dotenv_path=env_file or find_dotenv(usecwd=True), override=False)
    values: Dict[str, Any] = {
        "vault": os.getenv(VAULT_ENV, DEFAULT_VAULT),
        "strategy": os.getenv(STRATEGY_ENV, SelectionStrategy.TAG_FAN_OUT.value),
        "backend": os.getenv(BACKEND_ENV, "kubectl"),
        "context": os.getenv(CONTEXT_ENV) or None,
        "op_binary": os.getenv(OP_BIN_ENV, "op"),
        "kubectl_binary": os.getenv(KUBECTL_BIN_ENV, "kubectl"),
    }
    if "timeout" not in overrides or overrides["timeout"] is None:
        values["timeout"] = _timeout_from_env()
    values.update({key: value for key, value in overrides.items() if value is not None})
    if isinstance(values["strategy"], str):
        values["strategy"] = SelectionStrategy.parse(values["strategy"])
    return SyncConfig(namespace=namespace, **values)


__all__ = ["ConfigError", "SelectionStrategy", "SyncConfig", "load_config"]
