# step_workflows/coverage.py
from __future__ import annotations

import shlex

from ..dsl import sh, stage
from ..model import BuildStatus, Stage
from ..resolver import ResolvedJob
from .test import project_build_dir


COVERAGE_REPORT = "coverage.xml"


def gcovr_cmd(resolved: ResolvedJob) -> str:
    return " ".join([
        "gcovr",
        "--root", ".",
        "--filter", shlex.quote(f"{resolved.project}/"),
        "--exclude-unreachable-branches",
        "--xml",
        "--output", COVERAGE_REPORT,
        shlex.quote(project_build_dir(resolved)),
    ])


def coverage_stage(resolved: ResolvedJob) -> Stage:
    # A failing coverage collector never fails the run on its own.
    return stage(
        "coverage",
        sh("Collect coverage", gcovr_cmd(resolved)),
        requires=["gcovr"],
        post=True,
        on_failure=BuildStatus.UNSTABLE,
    )
