"""Typed records for vault items and the cluster secrets derived from them."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "opsync"

NOTES_FIELD_ID = "notesPlain"
NOTES_KIND = "NOTES"


@dataclass(frozen=True, slots=True)
class SecretField:
    """One labelled value inside a vault item."""

    id: str
    label: str
    value: Optional[str]
    kind: str = ""

    @property
    def is_note(self) -> bool:
        return self.id == NOTES_FIELD_ID or self.kind.upper() == NOTES_KIND

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SecretField":
        value = payload.get("value")
        return cls(
            id=str(payload.get("id", "")),
            label=str(payload.get("label") or payload.get("id", "")),
            value=None if value is None else str(value),
            kind=str(payload.get("purpose") or payload.get("type") or ""),
        )


@dataclass(frozen=True, slots=True)
class SecretItem:
    """A credential bundle as returned by ``op item list``/``op item get``."""

    title: str
    id: str = ""
    updated_at: Optional[str] = None
    tags: Tuple[str, ...] = ()
    fields: Tuple[SecretField, ...] = ()

    @property
    def ref(self) -> str:
        """Identifier used to fetch the full record; ids are unambiguous, titles may not be."""

        return self.id or self.title

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SecretItem":
        title = payload.get("title")
        if not isinstance(title, str) or not title:
            raise ValueError("Vault item is missing a title")
        updated = payload.get("updated_at") or payload.get("updatedAt")
        tags = payload.get("tags") or []
        fields = payload.get("fields") or []
        if not isinstance(tags, list) or not isinstance(fields, list):
            raise ValueError(f"Vault item {title!r} has malformed tags or fields")
        return cls(
            title=title,
            id=str(payload.get("id", "")),
            updated_at=str(updated) if updated else None,
            tags=tuple(str(tag) for tag in tags),
            fields=tuple(SecretField.from_dict(entry) for entry in fields if isinstance(entry, Mapping)),
        )

    def secret_data(self) -> Dict[str, str]:
        """Project the item's fields to secret data, dropping notes and empty values."""

        data: Dict[str, str] = {}
        for entry in self.fields:
            if entry.is_note or entry.value is None or not entry.label:
                continue
            data[entry.label] = entry.value
        return data


@dataclass(slots=True)
class ClusterSecret:
    """Namespaced ``Opaque`` secret materialised from a :class:`SecretItem`."""

    name: str
    namespace: str
    data: Dict[str, str] = field(default_factory=dict)
    creation_timestamp: Optional[str] = None

    @classmethod
    def from_item(cls, item: SecretItem, namespace: str) -> "ClusterSecret":
        return cls(name=item.title, namespace=namespace, data=item.secret_data())

    def encoded_data(self) -> Dict[str, str]:
        return {
            key: base64.b64encode(value.encode("utf-8")).decode("ascii")
            for key, value in sorted(self.data.items())
        }

    def to_manifest(self) -> Dict[str, Any]:
        """Render the complete declarative object; every apply re-declares all of it."""

        return {
            "apiVersion": "v1",
            "kind": "Secret",
            "type": "Opaque",
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "labels": {MANAGED_BY_LABEL: MANAGED_BY_VALUE},
            },
            "data": self.encoded_data(),
        }


__all__ = [
    "ClusterSecret",
    "MANAGED_BY_LABEL",
    "MANAGED_BY_VALUE",
    "SecretField",
    "SecretItem",
]
