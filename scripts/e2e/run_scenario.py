"""Run the end-to-end cluster scenario.

Provisions a throwaway kind cluster through the pytest suite under
``tests/e2e``. Extra arguments are passed through to pytest.
"""

from __future__ import annotations

import os
import subprocess
import sys
from typing import Sequence


def main(args: Sequence[str] | None = None) -> int:
    env = os.environ.copy()
    env["CLUSTER_HARNESS_E2E"] = "1"
    command = ["pytest", "-q", "tests/e2e", *(args if args is not None else sys.argv[1:])]
    result = subprocess.run(command, env=env, check=False)
    return result.returncode


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
