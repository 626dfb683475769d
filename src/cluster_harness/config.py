"""Configuration models for the cluster harness."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, model_validator

TASK_CONFIG_ENV = "TASK_CONFIG"
SKIP_CLEANUP_ENV = "SKIP_CLEANUP"

DEFAULT_INFRA_DEFINITION = "https://storage.googleapis.com/tekton-releases/pipeline/latest/release.yaml"
DEFAULT_TASK_DEFINITION = "https://raw.githubusercontent.com/tektoncd/catalog/master/buildpacks/buildpacks-v3.yaml"


class PollPolicy(BaseModel):
    timeout_s: float = Field(..., gt=0)
    interval_s: float = Field(..., gt=0)
    settle_s: float = Field(default=0.0, ge=0)

    @model_validator(mode="after")
    def check_bounds(self) -> "PollPolicy":
        if self.timeout_s < self.interval_s:
            raise ValueError("timeout_s must be greater than or equal to interval_s")
        return self


class ResourceNames(BaseModel):
    cluster: str = "integration-test-cluster"
    registry_container: str = "integration-test-registry"
    app_container: str = "integration-test-app"


class ImageConfig(BaseModel):
    registry_image: str = "registry:2"
    registry_container_port: int = Field(default=5000, ge=1, le=65535)
    app_container_port: int = Field(default=8080, ge=1, le=65535)
    output_repository: str = "integration-test/app"


class WorkloadConfig(BaseModel):
    infra_definition: str = DEFAULT_INFRA_DEFINITION
    default_task_definition: str = DEFAULT_TASK_DEFINITION
    task_run_template: Path = Field(default=Path("testdata/taskrun.tmpl.yaml"))
    infra_namespace: str = "tekton-pipelines"
    workload_namespace: str = "default"
    run_label_key: str = "tekton.dev/taskRun"
    run_label_value: str = "test-run"

    @property
    def run_label_selector(self) -> str:
        return f"{self.run_label_key}={self.run_label_value}"


class HarnessConfig(BaseModel):
    names: ResourceNames = Field(default_factory=ResourceNames)
    images: ImageConfig = Field(default_factory=ImageConfig)
    workload: WorkloadConfig = Field(default_factory=WorkloadConfig)
    cluster_ready_timeout_s: int = Field(default=60, ge=1)
    infra_poll: PollPolicy = Field(default_factory=lambda: PollPolicy(timeout_s=40, interval_s=2))
    workload_poll: PollPolicy = Field(default_factory=lambda: PollPolicy(timeout_s=240, interval_s=2))
    verify_poll: PollPolicy = Field(default_factory=lambda: PollPolicy(timeout_s=20, interval_s=1))
    http_expected_status: int = Field(default=200, ge=100, le=599)
    task_definition_override: Optional[str] = None
    skip_cleanup: bool = False

    def resolve_task_definition(self) -> str:
        return self.task_definition_override or self.workload.default_task_definition


def _truthy(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def apply_env_overrides(config: HarnessConfig, environ: Optional[Mapping[str, str]] = None) -> HarnessConfig:
    """Return a copy of ``config`` with ``TASK_CONFIG`` and ``SKIP_CLEANUP`` applied."""

    env = os.environ if environ is None else environ
    updates: Dict[str, Any] = {}
    task_config = env.get(TASK_CONFIG_ENV, "")
    if task_config:
        updates["task_definition_override"] = task_config
    skip = env.get(SKIP_CLEANUP_ENV)
    if skip is not None:
        updates["skip_cleanup"] = _truthy(skip)
    if not updates:
        return config
    return config.model_copy(update=updates)


def default_config() -> HarnessConfig:
    return HarnessConfig()


def load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def load_harness_config(path: Path, *, environ: Optional[Mapping[str, str]] = None) -> HarnessConfig:
    data = load_yaml(path)
    config = HarnessConfig.model_validate(data)
    return apply_env_overrides(config, environ)
