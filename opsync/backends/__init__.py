"""Vault and cluster backends used by the sync driver."""

from __future__ import annotations

from ..config import SyncConfig
from .cluster import ClusterAdapter, ClusterError, KubectlAdapter, KubernetesApiAdapter, SecretNotFound
from .vault import OnePasswordCLIAdapter, VaultAdapter, VaultError


def build_vault(config: SyncConfig) -> VaultAdapter:
    return OnePasswordCLIAdapter(binary=config.op_binary, timeout=config.timeout)


def build_cluster(config: SyncConfig) -> ClusterAdapter:
    if config.backend == "api":
        return KubernetesApiAdapter(context=config.context, timeout=config.timeout)
    return KubectlAdapter(binary=config.kubectl_binary, context=config.context, timeout=config.timeout)


__all__ = [
    "ClusterAdapter",
    "ClusterError",
    "KubectlAdapter",
    "KubernetesApiAdapter",
    "OnePasswordCLIAdapter",
    "SecretNotFound",
    "VaultAdapter",
    "VaultError",
    "build_cluster",
    "build_vault",
]
