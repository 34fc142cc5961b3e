"""Utility helpers exposed by opsync."""

from .credentials import op_environment, service_account_token, store_service_account_token
from .paths import state_dir

__all__ = [
    "op_environment",
    "service_account_token",
    "state_dir",
    "store_service_account_token",
]
