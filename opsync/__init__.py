"""Sync 1Password vault items into Kubernetes secrets."""

__version__ = "0.3.0"

__all__ = ["__version__"]
