"""Cluster and container lifecycle via kind and docker."""
from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Mapping, Protocol, Type

from .exceptions import CleanupError, HarnessError, ProvisioningError
from .utils import CommandResult, run_command

logger = logging.getLogger(__name__)


def _invoke(command: List[str], error: Type[HarnessError], action: str) -> CommandResult:
    try:
        return run_command(command)
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise error(f"{action}: {exc}") from exc


class Provisioner(Protocol):
    def create_cluster(self, name: str, ready_timeout_s: int, kubeconfig_path: Path) -> Path:
        ...

    def delete_cluster(self, name: str) -> None:
        ...

    def start_container(self, name: str, image: str, port_bindings: Mapping[int, int]) -> str:
        ...

    def remove_container(self, name: str) -> None:
        ...


class KindDockerProvisioner:
    def create_cluster(self, name: str, ready_timeout_s: int, kubeconfig_path: Path) -> Path:
        kubeconfig_path.parent.mkdir(parents=True, exist_ok=True)
        command = [
            "kind",
            "create",
            "cluster",
            "--name",
            name,
            "--wait",
            f"{ready_timeout_s}s",
            "--kubeconfig",
            str(kubeconfig_path),
        ]
        logger.info("Creating k8s cluster: %s", " ".join(command))
        result = _invoke(command, ProvisioningError, f"creating kind cluster {name}")
        if not result.ok:
            raise ProvisioningError(f"creating kind cluster {name}: {result.output}")
        if not kubeconfig_path.exists():
            raise ProvisioningError(f"kind did not write a kubeconfig to {kubeconfig_path}")
        return kubeconfig_path

    def delete_cluster(self, name: str) -> None:
        result = _invoke(["kind", "delete", "cluster", "--name", name], CleanupError, f"deleting kind cluster {name}")
        if not result.ok:
            raise CleanupError(f"deleting kind cluster {name}: {result.output}")

    def start_container(self, name: str, image: str, port_bindings: Mapping[int, int]) -> str:
        command = ["docker", "run", "-d", "--rm", "--name", name]
        for host_port, container_port in port_bindings.items():
            command.extend(["-p", f"{host_port}:{container_port}"])
        command.append(image)
        logger.info("Starting container: %s", " ".join(command))
        result = _invoke(command, ProvisioningError, f"starting container {name}")
        if not result.ok:
            raise ProvisioningError(f"starting container {name} from {image}: {result.output}")
        return result.output

    def remove_container(self, name: str) -> None:
        result = _invoke(["docker", "rm", "-f", name], CleanupError, f"removing container {name}")
        if result.ok or "No such container" in result.stderr:
            return
        raise CleanupError(f"removing container {name}: {result.output}")
