"""Scenario lifecycle: provision, build, run, verify, tear down."""
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

import httpx

from .config import HarnessConfig
from .exceptions import CleanupError, HarnessError, VerificationError
from .kube import KubernetesControl
from .observer import ClusterControl, Phase, PodPhasePredicate
from .paths import HarnessPaths, RunContext, ScratchDir
from .poller import Clock, Sleeper, require, wait_for
from .provisioner import KindDockerProvisioner, Provisioner
from .telemetry import append_stage_log, record_run_summary
from .utils import free_port, resolve_ip_address
from .verifier import HttpStatusPredicate
from .workload import WorkloadDriver, image_reference

logger = logging.getLogger(__name__)

ControlFactory = Callable[[Path], ClusterControl]


class Stage(str, Enum):
    INIT = "init"
    PROVISIONED = "provisioned"
    INFRA_READY = "infra_ready"
    TASK_INSTALLED = "task_installed"
    WORKLOAD_SUBMITTED = "workload_submitted"
    WORKLOAD_DONE = "workload_done"
    APP_RUNNING = "app_running"
    VERIFIED = "verified"
    TORN_DOWN = "torn_down"


@dataclass
class EnvironmentHandle:
    cluster_name: str
    registry_container: str
    app_container: str
    output_repository: str = ""
    scratch: Optional[ScratchDir] = None
    registry_port: Optional[int] = None
    app_port: Optional[int] = None
    kubeconfig_path: Optional[Path] = None
    host_address: Optional[str] = None
    image_reference: Optional[str] = None

    @property
    def scratch_dir(self) -> Optional[Path]:
        return self.scratch.path if self.scratch else None

    @property
    def local_image(self) -> Optional[str]:
        """The built image as pulled from the host side of the registry."""
        if self.registry_port is None:
            return None
        return image_reference("localhost", self.registry_port, self.output_repository)


@dataclass
class ScenarioContext:
    config: HarnessConfig
    run: RunContext
    handle: EnvironmentHandle
    stage: Stage = Stage.INIT
    control: Optional[ClusterControl] = None
    diagnostics: List[str] = field(default_factory=list)
    teardown_calls: int = 0
    skipped_cleanup: bool = False
    reconnect_hint: Optional[str] = None

    @property
    def torn_down(self) -> bool:
        return self.teardown_calls > 0


@dataclass(frozen=True)
class ScenarioResult:
    run_id: str
    stage: Stage
    verified: bool
    handle: EnvironmentHandle
    diagnostics: tuple[str, ...] = ()
    reconnect_hint: Optional[str] = None


def _default_http_client() -> httpx.Client:
    return httpx.Client(timeout=httpx.Timeout(5.0, connect=2.0))


class LifecycleOrchestrator:
    def __init__(
        self,
        config: HarnessConfig,
        paths: HarnessPaths,
        *,
        provisioner: Optional[Provisioner] = None,
        control_factory: ControlFactory = KubernetesControl,
        http_client_factory: Callable[[], httpx.Client] = _default_http_client,
        address_resolver: Callable[[], str] = resolve_ip_address,
        port_allocator: Callable[[], int] = free_port,
        clock: Clock = time.monotonic,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self.config = config
        self.paths = paths
        self.provisioner = provisioner or KindDockerProvisioner()
        self.control_factory = control_factory
        self.http_client_factory = http_client_factory
        self.address_resolver = address_resolver
        self.port_allocator = port_allocator
        self.clock = clock
        self.sleep = sleep

    def new_context(self, run_id: Optional[str] = None) -> ScenarioContext:
        run = RunContext.create(self.paths, run_id)
        run.ensure_run_dirs()
        names = self.config.names
        handle = EnvironmentHandle(
            cluster_name=names.cluster,
            registry_container=names.registry_container,
            app_container=names.app_container,
            output_repository=self.config.images.output_repository,
        )
        return ScenarioContext(config=self.config, run=run, handle=handle)

    def run(self, run_id: Optional[str] = None) -> ScenarioResult:
        ctx = self.new_context(run_id)
        try:
            self.setup(ctx)
            self.execute(ctx)
        except HarnessError as exc:
            self._note(ctx, f"failed at {ctx.stage.value}: {exc}")
            raise
        finally:
            self.teardown(ctx)
            self._write_summary(ctx)
        return self._result(ctx)

    # -- stages -----------------------------------------------------------

    def setup(self, ctx: ScenarioContext) -> None:
        handle = ctx.handle
        handle.scratch = ScratchDir.create()
        self._remove_leftovers(handle)

        registry_port = self.port_allocator()
        handle.registry_port = registry_port
        logger.info("Starting registry on port %d...", registry_port)
        output = self.provisioner.start_container(
            handle.registry_container,
            self.config.images.registry_image,
            {registry_port: self.config.images.registry_container_port},
        )
        if output:
            logger.info(output)

        logger.info("Creating k8s cluster %s...", handle.cluster_name)
        handle.kubeconfig_path = self.provisioner.create_cluster(
            handle.cluster_name,
            self.config.cluster_ready_timeout_s,
            ctx.run.kubeconfig_path(handle.cluster_name),
        )
        os.environ["KUBECONFIG"] = str(handle.kubeconfig_path)
        ctx.control = self.control_factory(handle.kubeconfig_path)
        self._advance(ctx, Stage.PROVISIONED, kubeconfig=str(handle.kubeconfig_path))

        workload = self.config.workload
        logger.info("Installing cluster infrastructure from %s...", workload.infra_definition)
        self._driver(ctx).submit(workload.infra_definition, mode="apply")
        logger.info("Waiting for infrastructure pods to be running...")
        outcome = require(
            PodPhasePredicate(ctx.control, workload.infra_namespace, "", Phase.RUNNING),
            self.config.infra_poll,
            clock=self.clock,
            sleep=self.sleep,
        )
        self._advance(ctx, Stage.INFRA_READY, attempts=outcome.attempts)

    def execute(self, ctx: ScenarioContext) -> None:
        handle = ctx.handle
        workload = self.config.workload
        driver = self._driver(ctx)

        task_definition = self.config.resolve_task_definition()
        logger.info("Installing task from: %s", task_definition)
        driver.submit(task_definition)
        self._advance(ctx, Stage.TASK_INSTALLED, source=task_definition)

        handle.host_address = self.address_resolver()
        handle.image_reference = image_reference(
            handle.host_address, handle.registry_port, self.config.images.output_repository
        )
        rendered = driver.submit_template(workload.task_run_template, {"IMAGE_NAME": handle.image_reference})
        self._advance(ctx, Stage.WORKLOAD_SUBMITTED, definition=str(rendered), image=handle.image_reference)

        logger.info("Waiting for workload to complete...")
        outcome = require(
            PodPhasePredicate(
                ctx.control, workload.workload_namespace, workload.run_label_selector, Phase.SUCCEEDED
            ),
            self.config.workload_poll,
            clock=self.clock,
            sleep=self.sleep,
        )
        self._advance(ctx, Stage.WORKLOAD_DONE, attempts=outcome.attempts)

        app_port = self.port_allocator()
        handle.app_port = app_port
        logger.info("Running app '%s' on port %d", handle.local_image, app_port)
        output = self.provisioner.start_container(
            handle.app_container, handle.local_image, {app_port: self.config.images.app_container_port}
        )
        if output:
            logger.info(output)
        self._advance(ctx, Stage.APP_RUNNING, port=app_port)

        url = f"http://localhost:{app_port}"
        logger.info("Checking app at %s...", url)
        with self.http_client_factory() as client:
            predicate = HttpStatusPredicate(url, self.config.http_expected_status, client)
            verification = wait_for(predicate, self.config.verify_poll, clock=self.clock, sleep=self.sleep)
        if not verification.success:
            raise VerificationError(
                f"{url} did not return {self.config.http_expected_status} within "
                f"{self.config.verify_poll.timeout_s:g}s; last observed: {verification.last_observation}"
            )
        self._advance(ctx, Stage.VERIFIED, attempts=verification.attempts)

    def teardown(self, ctx: ScenarioContext) -> Optional[str]:
        if ctx.torn_down:
            return ctx.reconnect_hint
        ctx.teardown_calls += 1
        handle = ctx.handle

        if self.config.skip_cleanup:
            ctx.skipped_cleanup = True
            ctx.reconnect_hint = self.reconnect_hint(handle)
            logger.warning(ctx.reconnect_hint)
            append_stage_log(ctx.run.cleanup_log_path, {"event": "cleanup_skipped", "cluster": handle.cluster_name})
            append_stage_log(
                ctx.run.stage_log_path,
                {"event": "stage", "stage": Stage.TORN_DOWN.value, "reached": ctx.stage.value, "skipped": True},
            )
            return ctx.reconnect_hint

        steps: list[tuple[str, Callable[[], None]]] = [
            ("remove scratch dir", lambda: handle.scratch.remove() if handle.scratch else None),
            (f"remove container {handle.registry_container}", lambda: self.provisioner.remove_container(handle.registry_container)),
            (f"remove container {handle.app_container}", lambda: self.provisioner.remove_container(handle.app_container)),
            (f"delete cluster {handle.cluster_name}", lambda: self.provisioner.delete_cluster(handle.cluster_name)),
        ]
        for name, step in steps:
            try:
                step()
            except (CleanupError, OSError) as exc:
                logger.warning("Cleanup step '%s' failed: %s", name, exc)
                self._note(ctx, f"cleanup: {name}: {exc}")
                append_stage_log(ctx.run.cleanup_log_path, {"event": "cleanup_failed", "step": name, "error": str(exc)})
            else:
                append_stage_log(ctx.run.cleanup_log_path, {"event": "cleanup_step", "step": name})
        append_stage_log(ctx.run.stage_log_path, {"event": "stage", "stage": Stage.TORN_DOWN.value, "reached": ctx.stage.value})
        return None

    def reconnect_hint(self, handle: EnvironmentHandle) -> str:
        return (
            "==============\n"
            "SKIPPING CLEANUP:\n"
            f"To manually clean up run 'kind delete cluster --name=\"{handle.cluster_name}\"'\n"
            "or rerun without 'SKIP_CLEANUP=true'\n\n"
            f"The temp dir is: {handle.scratch_dir}\n"
            f"Output image: {handle.local_image}\n"
            f"To use kubectl run: export KUBECONFIG=\"{handle.kubeconfig_path}\"\n"
            "To list TaskRuns run: kubectl get taskruns\n"
            "=============="
        )

    # -- helpers ----------------------------------------------------------

    def _remove_leftovers(self, handle: EnvironmentHandle) -> None:
        # Fixed names: a previous run may have left these behind.
        for remove in (
            lambda: self.provisioner.remove_container(handle.registry_container),
            lambda: self.provisioner.remove_container(handle.app_container),
            lambda: self.provisioner.delete_cluster(handle.cluster_name),
        ):
            try:
                remove()
            except (CleanupError, OSError) as exc:
                logger.debug("Ignoring leftover cleanup failure: %s", exc)

    def _driver(self, ctx: ScenarioContext) -> WorkloadDriver:
        if ctx.control is None or ctx.handle.scratch_dir is None:
            raise HarnessError(f"cluster {ctx.handle.cluster_name} is not provisioned")
        return WorkloadDriver(ctx.control, ctx.handle.scratch_dir, stage_log=ctx.run.stage_log_path)

    def _advance(self, ctx: ScenarioContext, stage: Stage, **details: object) -> None:
        ctx.stage = stage
        logger.info("===> %s", stage.value.upper())
        append_stage_log(ctx.run.stage_log_path, {"event": "stage", "stage": stage.value, **details})

    @staticmethod
    def _note(ctx: ScenarioContext, message: str) -> None:
        ctx.diagnostics.append(message)

    def _result(self, ctx: ScenarioContext) -> ScenarioResult:
        return ScenarioResult(
            run_id=ctx.run.run_id,
            stage=ctx.stage,
            verified=ctx.stage is Stage.VERIFIED,
            handle=ctx.handle,
            diagnostics=tuple(ctx.diagnostics),
            reconnect_hint=ctx.reconnect_hint,
        )

    def _write_summary(self, ctx: ScenarioContext) -> None:
        handle = ctx.handle
        record_run_summary(
            ctx.run,
            {
                "stage": ctx.stage.value,
                "verified": ctx.stage is Stage.VERIFIED,
                "cleanup_skipped": ctx.skipped_cleanup,
                "cluster": handle.cluster_name,
                "registry_port": handle.registry_port,
                "app_port": handle.app_port,
                "image": handle.image_reference,
                "kubeconfig": str(handle.kubeconfig_path) if handle.kubeconfig_path else None,
                "diagnostics": ctx.diagnostics,
            },
        )


def manual_teardown(root: HarnessPaths, config: HarnessConfig, provisioner: Optional[Provisioner] = None) -> list[str]:
    """Force-remove the fixed-name resources left by a skipped cleanup."""
    provisioner = provisioner or KindDockerProvisioner()
    failures: list[str] = []
    names = config.names
    for name, step in (
        (names.registry_container, lambda: provisioner.remove_container(names.registry_container)),
        (names.app_container, lambda: provisioner.remove_container(names.app_container)),
        (names.cluster, lambda: provisioner.delete_cluster(names.cluster)),
    ):
        try:
            step()
        except CleanupError as exc:
            logger.warning("Teardown of %s failed: %s", name, exc)
            failures.append(str(exc))
    context = RunContext.create(root, "manual-teardown")
    append_stage_log(context.cleanup_log_path, {"event": "manual_teardown", "failures": failures})
    return failures
