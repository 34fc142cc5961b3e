"""Cluster integration: ``kubectl`` subprocess and Kubernetes API adapters."""

from __future__ import annotations

import json
import subprocess
from typing import Any, List, Optional, Protocol, Sequence

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from ..models import ClusterSecret


class ClusterError(RuntimeError):
    """A cluster call failed or could not be interpreted."""


class SecretNotFound(ClusterError):
    """The requested secret does not exist in the namespace."""


class ClusterAdapter(Protocol):
    """Protocol implemented by every cluster backend."""

    def get_creation_timestamp(self, name: str, namespace: str) -> Optional[str]:
        ...

    def apply_secret(self, secret: ClusterSecret) -> None:
        ...

    def ensure_namespace(self, namespace: str) -> bool:
        ...


def _namespace_manifest(namespace: str) -> dict[str, Any]:
    return {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": namespace}}


class KubectlAdapter:
    """Adapter that shells out to ``kubectl`` against an optional context."""

    def __init__(self, binary: str = "kubectl", context: Optional[str] = None, timeout: float = 30.0) -> None:
        self.binary = binary
        self.context = context
        self.timeout = timeout

    def _command(self, args: Sequence[str]) -> List[str]:
        command = [self.binary]
        if self.context:
            command.extend(["--context", self.context])
        command.extend(args)
        return command

    def _run(self, args: Sequence[str], *, stdin: Optional[str] = None) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                self._command(args),
                input=stdin,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise ClusterError(f"{self.binary} executable not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise ClusterError(f"kubectl {args[0]} timed out after {self.timeout:g}s") from exc

    @staticmethod
    def _is_not_found(result: subprocess.CompletedProcess) -> bool:
        return "NotFound" in result.stderr or "not found" in result.stderr

    def get_creation_timestamp(self, name: str, namespace: str) -> Optional[str]:
        result = self._run(
            ["get", "secret", name, "--namespace", namespace, "-o", "jsonpath={.metadata.creationTimestamp}"]
        )
        if result.returncode != 0:
            if self._is_not_found(result):
                raise SecretNotFound(f"secret {namespace}/{name} not found")
            raise ClusterError(result.stderr.strip() or f"kubectl get exited with {result.returncode}")
        return result.stdout.strip() or None

    def apply_secret(self, secret: ClusterSecret) -> None:
        manifest = json.dumps(secret.to_manifest())
        try:
            self.get_creation_timestamp(secret.name, secret.namespace)
        except SecretNotFound:
            args = ["create", "-f", "-"]
        else:
            # delete and recreate so creationTimestamp tracks the last sync
            args = ["replace", "--force", "-f", "-"]
        result = self._run(args, stdin=manifest)
        if result.returncode != 0:
            raise ClusterError(result.stderr.strip() or f"kubectl {args[0]} exited with {result.returncode}")

    def ensure_namespace(self, namespace: str) -> bool:
        result = self._run(["get", "namespace", namespace, "-o", "name"])
        if result.returncode == 0:
            return False
        if not self._is_not_found(result):
            raise ClusterError(result.stderr.strip() or f"kubectl get namespace exited with {result.returncode}")
        created = self._run(["apply", "-f", "-"], stdin=json.dumps(_namespace_manifest(namespace)))
        if created.returncode != 0:
            raise ClusterError(created.stderr.strip() or f"kubectl apply exited with {created.returncode}")
        return True


class KubernetesApiAdapter:
    """Adapter built on the official ``kubernetes`` Python client."""

    def __init__(self, context: Optional[str] = None, timeout: float = 30.0, core_v1: Any = None) -> None:
        self.timeout = timeout
        if core_v1 is None:
            try:
                config.load_incluster_config()
            except config.ConfigException:
                # outside a pod: fall back to the local kubeconfig
                try:
                    config.load_kube_config(context=context)
                except config.ConfigException as exc:
                    raise ClusterError(f"failed to load Kubernetes configuration: {exc}") from exc
            core_v1 = client.CoreV1Api()
        self.core_v1 = core_v1

    def _call(self, action: str, method: str, **kwargs: Any) -> Any:
        """Invoke ``core_v1.<method>``; transport failures become :class:`ClusterError`.

        ``ApiException`` is left for the caller, which decides what a 404 means.
        """

        try:
            return getattr(self.core_v1, method)(_request_timeout=self.timeout, **kwargs)
        except (HTTPError, OSError) as exc:
            raise ClusterError(f"failed to {action}: {exc}") from exc

    def _read_secret(self, name: str, namespace: str) -> Any:
        try:
            return self._call(f"read secret {namespace}/{name}", "read_namespaced_secret", name=name, namespace=namespace)
        except ApiException as exc:
            if exc.status == 404:
                raise SecretNotFound(f"secret {namespace}/{name} not found") from exc
            raise ClusterError(f"failed to read secret {namespace}/{name}: {exc.reason}") from exc

    def get_creation_timestamp(self, name: str, namespace: str) -> Optional[str]:
        secret = self._read_secret(name, namespace)
        created = secret.metadata.creation_timestamp if secret.metadata else None
        if created is None:
            return None
        return created.isoformat() if hasattr(created, "isoformat") else str(created)

    def apply_secret(self, secret: ClusterSecret) -> None:
        target = f"{secret.namespace}/{secret.name}"
        try:
            self._call(f"replace secret {target}", "delete_namespaced_secret", name=secret.name, namespace=secret.namespace)
        except ApiException as exc:
            if exc.status != 404:
                raise ClusterError(f"failed to replace secret {target}: {exc.reason}") from exc
        try:
            self._call(
                f"create secret {target}",
                "create_namespaced_secret",
                namespace=secret.namespace,
                body=secret.to_manifest(),
            )
        except ApiException as exc:
            raise ClusterError(f"failed to create secret {target}: {exc.reason}") from exc

    def ensure_namespace(self, namespace: str) -> bool:
        try:
            self._call(f"read namespace {namespace}", "read_namespace", name=namespace)
            return False
        except ApiException as exc:
            if exc.status != 404:
                raise ClusterError(f"failed to read namespace {namespace}: {exc.reason}") from exc
        try:
            self._call(f"create namespace {namespace}", "create_namespace", body=_namespace_manifest(namespace))
        except ApiException as exc:
            raise ClusterError(f"failed to create namespace {namespace}: {exc.reason}") from exc
        return True


__all__ = [
    "ClusterAdapter",
    "ClusterError",
    "KubectlAdapter",
    "KubernetesApiAdapter",
    "SecretNotFound",
]
