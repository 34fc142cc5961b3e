"""Resolve the 1Password service account token handed to the ``op`` CLI."""

from __future__ import annotations

import os
from typing import Dict, Mapping, Optional

import keyring
from keyring.errors import KeyringError

KEYRING_SERVICE = "opsync"
TOKEN_NAME = "OP_SERVICE_ACCOUNT_TOKEN"


def service_account_token() -> Optional[str]:
    """Return the token from the environment, falling back to the system keyring."""

    token = os.getenv(TOKEN_NAME)
    if token:
        return token
    try:
        return keyring.get_password(KEYRING_SERVICE, TOKEN_NAME)
    except KeyringError:
        # no usable backend; op may still be signed in interactively
        return None


def store_service_account_token(token: str) -> None:
    keyring.set_password(KEYRING_SERVICE, TOKEN_NAME, token)


def op_environment(base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Environment for ``op`` subprocesses with the token injected when known."""

    env = dict(os.environ if base is None else base)
    token = service_account_token()
    if token:
        env[TOKEN_NAME] = token
    return env


__all__ = [
    "KEYRING_SERVICE",
    "TOKEN_NAME",
    "op_environment",
    "service_account_token",
    "store_service_account_token",
]
