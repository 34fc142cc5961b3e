"""Normalise vault and cluster timestamps into comparable epochs."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

EPOCH_FALLBACK = "1970-01-01T00:00:00Z"

_BARE_FORMAT = "%Y-%m-%dT%H:%M:%S"
_FRACTION = re.compile(r"\.(\d+)")


def _parse_iso(value: str) -> Optional[datetime]:
    candidate = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    # fromisoformat on 3.10 only takes 3 or 6 fractional digits
    candidate = _FRACTION.sub(lambda match: "." + match.group(1)[:6].ljust(6, "0"), candidate, count=1)
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        return None


def _parse_bare(value: str) -> Optional[datetime]:
    # last resort for trailing noise fromisoformat refuses; any offset is dropped
    try:
        return datetime.strptime(value[:19], _BARE_FORMAT)
    except ValueError:
        return None


def to_epoch(value: Optional[str]) -> Optional[int]:
    """Return *value* as integer seconds since the epoch, or ``None``.

    Both a full ISO-8601 timestamp and the bare ``YYYY-MM-DDTHH:MM:SS``
    shape are attempted. Naive results are treated as UTC. Empty or
    unparsable input yields ``None`` rather than raising.
    """

    if not value:
        return None
    text = value.strip()
    if not text:
        return None
    parsed = _parse_iso(text) or _parse_bare(text)
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


__all__ = ["EPOCH_FALLBACK", "to_epoch"]
