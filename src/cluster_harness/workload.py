"""Submission of declarative workload definitions."""
from __future__ import annotations

import logging
import re
import tempfile
from pathlib import Path
from typing import Mapping, Optional

from .exceptions import DefinitionRejected
from .observer import ClusterControl
from .telemetry import append_stage_log

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def image_reference(host: str, port: int, repository: str) -> str:
    return f"{host}:{port}/{repository}"


def is_remote(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def render_template(contents: str, values: Mapping[str, str]) -> str:
    names = set(PLACEHOLDER.findall(contents))
    if not names:
        raise DefinitionRejected("template contains no ${...} placeholders")
    missing = sorted(names - set(values))
    if missing:
        raise DefinitionRejected(f"no value for template placeholders: {', '.join(missing)}")
    return PLACEHOLDER.sub(lambda match: values[match.group(1)], contents)


def render_definition(template_path: Path, values: Mapping[str, str], output_dir: Path) -> Path:
    """Render ``template_path`` into a new ``taskrun.*.yml`` file under ``output_dir``."""

    try:
        contents = template_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DefinitionRejected(f"reading template {template_path}: {exc}") from exc
    rendered = render_template(contents, values)
    with tempfile.NamedTemporaryFile(
        "w", dir=output_dir, prefix="taskrun.", suffix=".yml", delete=False, encoding="utf-8"
    ) as handle:
        handle.write(rendered)
    return Path(handle.name)


class WorkloadDriver:
    def __init__(self, control: ClusterControl, scratch_dir: Path, *, stage_log: Optional[Path] = None) -> None:
        self.control = control
        self.scratch_dir = scratch_dir
        self.stage_log = stage_log

    def submit(self, source: str | Path, namespace: Optional[str] = None, *, mode: str = "create") -> str:
        source = str(source)
        if not is_remote(source) and not Path(source).is_file():
            raise DefinitionRejected(f"definition not found: {source}")
        output = self.control.apply_definition(source, namespace, mode=mode)
        if output:
            logger.info(output)
        if self.stage_log is not None:
            append_stage_log(self.stage_log, {"event": "definition_submitted", "source": source, "mode": mode})
        return output

    def submit_template(
        self, template_path: Path, values: Mapping[str, str], namespace: Optional[str] = None
    ) -> Path:
        rendered = render_definition(template_path, values, self.scratch_dir)
        logger.info("Creating workload from: %s", rendered)
        self.submit(rendered, namespace)
        return rendered
