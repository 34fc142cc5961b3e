"""Rotating JSON logger paired with a tamper-evident audit trail."""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from .paths import state_dir

LOGGER_NAME = "opsync"


def log_file() -> Path:
    return state_dir() / "logs" / "opsync.log"


def audit_log_path() -> Path:
    return state_dir() / "audit.jsonl"


def audit_key_path() -> Path:
    return state_dir() / "audit_ed25519.pem"


def _get_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    path = log_file()
    current = False
    for handler in list(logger.handlers):
        if not isinstance(handler, RotatingFileHandler):
            continue
        # the state directory can move between runs (tests, overrides)
        if Path(handler.baseFilename) == path:
            current = True
        else:
            logger.removeHandler(handler)
            handler.close()
    if current:
        return logger

    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
    formatter = logging.Formatter("%(message)s")

    logger.setLevel(logging.INFO)
    logger.propagate = False
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger


def _load_or_create_key() -> ed25519.Ed25519PrivateKey:
    key_path = audit_key_path()
    key_path.parent.mkdir(parents=True, exist_ok=True)
    if key_path.exists():
        data = key_path.read_bytes()
        return serialization.load_pem_private_key(data, password=None)
    key = ed25519.Ed25519PrivateKey.generate()
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    key_path.write_bytes(pem)
    os.chmod(key_path, 0o600)
    return key


def _last_hash() -> Optional[str]:
    path = audit_log_path()
    if not path.exists():
        return None
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    if not lines:
        return None
    try:
        payload = json.loads(lines[-1])
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    return payload.get("hash")


def _write_audit_record(record: Dict[str, object]) -> None:
    key = _load_or_create_key()
    prev_hash = _last_hash()
    entry = {
        "ts": time.time(),
        "prev": prev_hash,
        "record": record,
    }
    canonical = json.dumps(entry, sort_keys=True, separators=(",", ":")).encode("utf-8")
    digest = hashlib.sha256(canonical).digest()
    signature = key.sign(digest)
    entry["hash"] = hashlib.sha256(canonical).hexdigest()
    entry["signature"] = base64.b64encode(signature).decode("ascii")
    entry["public_key"] = base64.b64encode(
        key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
    ).decode("ascii")
    with audit_log_path().open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(entry, sort_keys=True) + "\n")


def info(record: Dict[str, object]) -> None:
    """Write a structured JSON record to the rotating log and the audit trail."""

    logger = _get_logger()
    logger.info(json.dumps(record, sort_keys=True))
    _write_audit_record(record)


__all__ = ["audit_log_path", "info", "log_file"]
