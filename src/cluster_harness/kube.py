"""Cluster control backed by the Kubernetes API and kubectl."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError, MaxRetryError, NewConnectionError

from .exceptions import DefinitionRejected, FatalQueryError, TransientQueryError
from .observer import Phase, ProcessStatus
from .utils import run_command

logger = logging.getLogger(__name__)

APPLY_MODES = ("create", "apply")
LIST_REQUEST_TIMEOUT_S = 5.0


def _connection_refused(exc: HTTPError) -> bool:
    if isinstance(exc, MaxRetryError):
        return isinstance(exc.reason, NewConnectionError)
    return isinstance(exc, NewConnectionError)


class KubernetesControl:
    def __init__(
        self,
        kubeconfig_path: Path,
        *,
        api: Any = None,
        request_timeout_s: float = LIST_REQUEST_TIMEOUT_S,
    ) -> None:
        self.kubeconfig_path = Path(kubeconfig_path)
        self.request_timeout_s = request_timeout_s
        self._api = api

    @property
    def api(self) -> Any:
        if self._api is None:
            api_client = config.new_client_from_config(config_file=str(self.kubeconfig_path))
            self._api = client.CoreV1Api(api_client)
        return self._api

    def list_processes(self, namespace: str, label_selector: str = "") -> list[ProcessStatus]:
        try:
            pods = self.api.list_namespaced_pod(
                namespace, label_selector=label_selector, _request_timeout=self.request_timeout_s
            )
        except ApiException as exc:
            raise TransientQueryError(f"listing pods in {namespace}: {exc.status} {exc.reason}") from exc
        except (MaxRetryError, NewConnectionError) as exc:
            if _connection_refused(exc):
                raise FatalQueryError(f"cluster API unreachable while listing pods in {namespace}: {exc}") from exc
            raise TransientQueryError(f"listing pods in {namespace}: {exc}") from exc
        except HTTPError as exc:
            raise TransientQueryError(f"listing pods in {namespace}: {exc}") from exc
        return [
            ProcessStatus(
                name=pod.metadata.name,
                namespace=pod.metadata.namespace or namespace,
                phase=Phase.parse(pod.status.phase if pod.status else None),
            )
            for pod in pods.items
        ]

    def apply_definition(self, source: str, namespace: Optional[str] = None, *, mode: str = "create") -> str:
        if mode not in APPLY_MODES:
            raise ValueError(f"mode must be one of {APPLY_MODES}")
        command = ["kubectl", mode, "-f", source]
        if namespace:
            command.extend(["-n", namespace])
        env = os.environ.copy()
        env["KUBECONFIG"] = str(self.kubeconfig_path)
        logger.info("Submitting definition: %s", " ".join(command))
        try:
            result = run_command(command, env=env)
        except OSError as exc:
            raise DefinitionRejected(f"running kubectl {mode}: {exc}") from exc
        if not result.ok:
            raise DefinitionRejected(f"kubectl {mode} -f {source} failed: {result.output}")
        return result.output
