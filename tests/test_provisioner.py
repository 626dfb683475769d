from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from cluster_harness.exceptions import CleanupError, ProvisioningError
from cluster_harness.provisioner import KindDockerProvisioner
from cluster_harness.utils import CommandResult


class Recorder:
    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.commands: list[list[str]] = []
        self.error: BaseException | None = None
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr

    def __call__(self, command, **_):
        self.commands.append(command)
        if self.error is not None:
            raise self.error
        return CommandResult(command=command, returncode=self.returncode, stdout=self.stdout, stderr=self.stderr)


@pytest.fixture
def recorder(monkeypatch) -> Recorder:
    recorder = Recorder()
    monkeypatch.setattr("cluster_harness.provisioner.run_command", recorder)
    return recorder


def test_start_container_binds_ports(recorder: Recorder) -> None:
    recorder.stdout = "abc123\n"
    output = KindDockerProvisioner().start_container("integration-test-registry", "registry:2", {5001: 5000})
    assert output == "abc123"
    assert recorder.commands == [
        ["docker", "run", "-d", "--rm", "--name", "integration-test-registry", "-p", "5001:5000", "registry:2"]
    ]


def test_start_container_failure(recorder: Recorder) -> None:
    recorder.returncode = 125
    recorder.stderr = "port is already allocated"
    with pytest.raises(ProvisioningError, match="already allocated"):
        KindDockerProvisioner().start_container("integration-test-app", "localhost:5001/app", {8081: 8080})


def test_remove_missing_container_is_not_an_error(recorder: Recorder) -> None:
    recorder.returncode = 1
    recorder.stderr = "Error: No such container: integration-test-app"
    KindDockerProvisioner().remove_container("integration-test-app")
    assert recorder.commands == [["docker", "rm", "-f", "integration-test-app"]]


def test_remove_container_failure(recorder: Recorder) -> None:
    recorder.returncode = 1
    recorder.stderr = "Cannot connect to the Docker daemon"
    with pytest.raises(CleanupError):
        KindDockerProvisioner().remove_container("integration-test-app")


def test_create_cluster_writes_kubeconfig(recorder: Recorder, tmp_path: Path, monkeypatch) -> None:
    kubeconfig = tmp_path / "state" / "kind-config-integration-test-cluster"

    def fake_kind(command, **_):
        recorder.commands.append(command)
        kubeconfig.write_text("apiVersion: v1\n", encoding="utf-8")
        return CommandResult(command=command, returncode=0, stdout="", stderr="")

    monkeypatch.setattr("cluster_harness.provisioner.run_command", fake_kind)
    assert KindDockerProvisioner().create_cluster("integration-test-cluster", 60, kubeconfig) == kubeconfig
    assert recorder.commands[0][:5] == ["kind", "create", "cluster", "--name", "integration-test-cluster"]
    assert "60s" in recorder.commands[0]


def test_create_cluster_without_kubeconfig_fails(recorder: Recorder, tmp_path: Path) -> None:
    with pytest.raises(ProvisioningError, match="kubeconfig"):
        KindDockerProvisioner().create_cluster("integration-test-cluster", 60, tmp_path / "kubeconfig")


def test_delete_cluster_failure(recorder: Recorder) -> None:
    recorder.returncode = 1
    with pytest.raises(CleanupError):
        KindDockerProvisioner().delete_cluster("integration-test-cluster")


def _missing(tool: str) -> FileNotFoundError:
    return FileNotFoundError(2, "No such file or directory", tool)


@pytest.mark.parametrize(
    "error",
    [_missing("docker"), subprocess.TimeoutExpired(["docker", "run"], 30)],
    ids=["docker-missing", "docker-hung"],
)
def test_start_container_launch_failure(recorder: Recorder, error: BaseException) -> None:
    recorder.error = error
    with pytest.raises(ProvisioningError, match="starting container integration-test-registry") as excinfo:
        KindDockerProvisioner().start_container("integration-test-registry", "registry:2", {5001: 5000})
    assert excinfo.value.__cause__ is error


def test_create_cluster_without_kind(recorder: Recorder, tmp_path: Path) -> None:
    recorder.error = _missing("kind")
    with pytest.raises(ProvisioningError, match="creating kind cluster"):
        KindDockerProvisioner().create_cluster("integration-test-cluster", 60, tmp_path / "kubeconfig")


def test_cleanup_without_tools(recorder: Recorder) -> None:
    recorder.error = _missing("docker")
    with pytest.raises(CleanupError, match="removing container"):
        KindDockerProvisioner().remove_container("integration-test-app")
    recorder.error = _missing("kind")
    with pytest.raises(CleanupError, match="deleting kind cluster"):
        KindDockerProvisioner().delete_cluster("integration-test-cluster")
