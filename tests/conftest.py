from __future__ import annotations

import io
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import keyring
import keyring.backend
import pytest
from rich.console import Console


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from opsync.backends import ClusterError, SecretNotFound, VaultError  # noqa: E402
from opsync.models import ClusterSecret, SecretItem  # noqa: E402


class MemoryKeyring(keyring.backend.KeyringBackend):
    priority = 1

    def __init__(self) -> None:
        self._data: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> str | None:
        return self._data.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self._data[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        self._data.pop((service, username), None)


class FakeVault:
    """In-memory stand-in for ``op`` keyed by item title."""

    def __init__(self, records: List[Dict[str, Any]]) -> None:
        self.records = {record["title"]: record for record in records}
        self.list_calls: List[Tuple[str, Optional[str]]] = []
        self.get_calls: List[str] = []
        self.broken: set[str] = set()
        self.list_error: Optional[str] = None

    def list_items(self, vault: str, tag: Optional[str] = None) -> List[SecretItem]:
        self.list_calls.append((vault, tag))
        if self.list_error:
            raise VaultError(self.list_error)
        return [
            SecretItem(title=record["title"], tags=tuple(record.get("tags", [])))
            for record in self.records.values()
            if tag is None or tag in record.get("tags", [])
        ]

    def get_item(self, ref: str, vault: str) -> SecretItem:
        self.get_calls.append(ref)
        if ref in self.broken or ref not in self.records:
            raise VaultError(f"item get {ref!r} failed")
        return SecretItem.from_dict(self.records[ref])


class FakeCluster:
    """In-memory namespaced secret store with a fixed clock."""

    def __init__(self, now: str = "2024-03-01T00:00:00Z") -> None:
        self.now = now
        self.secrets: Dict[Tuple[str, str], ClusterSecret] = {}
        self.applied: List[ClusterSecret] = []
        self.namespaces: set[str] = set()
        self.fail_apply: set[str] = set()
        self.fail_read: set[str] = set()

    def add(self, name: str, namespace: str, created: Optional[str], data: Optional[Dict[str, str]] = None) -> None:
        self.secrets[(namespace, name)] = ClusterSecret(name, namespace, dict(data or {}), created)

    def get_creation_timestamp(self, name: str, namespace: str) -> Optional[str]:
        if name in self.fail_read:
            raise ClusterError("connection refused")
        secret = self.secrets.get((namespace, name))
        if secret is None:
            raise SecretNotFound(f"secret {namespace}/{name} not found")
        return secret.creation_timestamp

    def apply_secret(self, secret: ClusterSecret) -> None:
        if secret.name in self.fail_apply:
            raise ClusterError("admission webhook denied the request")
        stored = ClusterSecret(secret.name, secret.namespace, dict(secret.data), self.now)
        self.secrets[(secret.namespace, secret.name)] = stored
        self.applied.append(stored)

    def ensure_namespace(self, namespace: str) -> bool:
        if namespace in self.namespaces:
            return False
        self.namespaces.add(namespace)
        return True


@pytest.fixture(autouse=True)
def isolated_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    state = tmp_path / "state"
    monkeypatch.setenv("OPSYNC_STATE_DIR", str(state))
    monkeypatch.delenv("OP_SERVICE_ACCOUNT_TOKEN", raising=False)
    for name in (
        "OPSYNC_VAULT",
        "OPSYNC_STRATEGY",
        "OPSYNC_BACKEND",
        "OPSYNC_CONTEXT",
        "OPSYNC_TIMEOUT",
        "OPSYNC_OP_BIN",
        "OPSYNC_KUBECTL_BIN",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    keyring.set_keyring(MemoryKeyring())
    return state


@pytest.fixture()
def console() -> Console:
    return Console(file=io.StringIO(), width=200, highlight=False, color_system=None)


@pytest.fixture()
def db_creds() -> Dict[str, Any]:
    return {
        "id": "",
        "title": "db-creds",
        "updated_at": "2024-01-01T00:00:00Z",
        "tags": ["automation"],
        "fields": [
            {"id": "notesPlain", "type": "STRING", "purpose": "NOTES", "label": "notesPlain", "value": "rotate yearly"},
            {"id": "password", "type": "CONCEALED", "label": "password", "value": "secret1"},
        ],
    }
