"""Filesystem path helpers for opsync state."""

from __future__ import annotations

import os
from pathlib import Path

STATE_DIR_ENV = "OPSYNC_STATE_DIR"


def state_dir() -> Path:
    """Return the directory used for persistent opsync state.

    The location defaults to ``~/.opsync`` but can be overridden via the
    ``OPSYNC_STATE_DIR`` environment variable. The path is expanded and
    resolved so callers always receive an absolute location.
    """

    override = os.environ.get(STATE_DIR_ENV)
    if override:
        return Path(override).expanduser().resolve()
    return Path.home() / ".opsync"
