"""Vault integration built on the 1Password ``op`` CLI."""

from __future__ import annotations

import json
import subprocess
from typing import Any, List, Optional, Protocol, Sequence

from ..models import SecretItem
from ..utils import logbook
from ..utils.credentials import op_environment


class VaultError(RuntimeError):
    """Any failure to retrieve data from the vault.

    Authentication, missing items and transport problems are not told
    apart; the ``op`` CLI does not report them in a stable way.
    """


class VaultAdapter(Protocol):
    """Protocol implemented by every vault backend."""

    def list_items(self, vault: str, tag: Optional[str] = None) -> List[SecretItem]:
        ...

    def get_item(self, ref: str, vault: str) -> SecretItem:
        ...


class OnePasswordCLIAdapter:
    """Adapter that shells out to ``op`` and decodes its JSON output."""

    def __init__(self, binary: str = "op", timeout: float = 30.0) -> None:
        self.binary = binary
        self.timeout = timeout

    def _run(self, args: Sequence[str], *, allow_empty: bool = False) -> Any:
        command = [self.binary, *args, "--format", "json"]
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
                env=op_environment(),
            )
        except FileNotFoundError as exc:
            raise VaultError(f"{self.binary} executable not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise VaultError(f"{' '.join(args[:2])} timed out after {self.timeout:g}s") from exc
        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit status {result.returncode}"
            raise VaultError(f"{' '.join(args[:2])} failed: {detail}")
        output = result.stdout.strip()
        if not output:
            if allow_empty:
                return None
            raise VaultError(f"{' '.join(args[:2])} returned no content")
        try:
            return json.loads(output)
        except json.JSONDecodeError as exc:
            raise VaultError(f"{' '.join(args[:2])} returned malformed JSON") from exc

    def list_items(self, vault: str, tag: Optional[str] = None) -> List[SecretItem]:
        args = ["item", "list", "--vault", vault]
        if tag:
            args.extend(["--tags", tag])
        # op prints nothing at all for an empty listing
        payload = self._run(args, allow_empty=True)
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise VaultError("item list did not return an array")
        items: List[SecretItem] = []
        for position, entry in enumerate(payload):
            try:
                if not isinstance(entry, dict):
                    raise ValueError("Vault item is not an object")
                items.append(SecretItem.from_dict(entry))
            except ValueError as exc:
                # skipped entries are logged; the rest of the listing is still returned
                logbook.info(
                    {
                        "action": "vault_list_skip",
                        "vault": vault,
                        "position": position,
                        "id": entry.get("id") if isinstance(entry, dict) else None,
                        "error": str(exc),
                    }
                )
        return items

    def get_item(self, ref: str, vault: str) -> SecretItem:
        payload = self._run(["item", "get", ref, "--vault", vault])
        if not isinstance(payload, dict):
            raise VaultError(f"item get {ref!r} did not return an object")
        try:
            return SecretItem.from_dict(payload)
        except ValueError as exc:
            raise VaultError(str(exc)) from exc


__all__ = ["OnePasswordCLIAdapter", "VaultAdapter", "VaultError"]
