# step_workflows/build.py
from __future__ import annotations

import shlex

from ..dsl import best_effort, sh, stage
from ..model import Stage
from ..resolver import ResolvedJob


BUILD_DIR = "build"
ANALYZER_REPORT_DIR = "clangScanBuildReports"


# ---------------------------------------------------------------------
# scan-build wrapping
# ---------------------------------------------------------------------

def _scan_build(cmd: str, *, report: bool) -> str:
    """Wrap a command in scan-build. Only the build step writes the report."""
    if report:
        return f"scan-build -o {ANALYZER_REPORT_DIR} --keep-going {cmd}"
    return f"scan-build {cmd}"


# ---------------------------------------------------------------------
# Configure
# ---------------------------------------------------------------------

def configure_cmd(resolved: ResolvedJob) -> str:
    cfg = resolved.build
    parts = ["cmake", "-G", shlex.quote(cfg.generator)]
    if cfg.argument_string:
        parts.append(cfg.argument_string)
    parts.extend(["-S", ".", "-B", BUILD_DIR])
    cmd = " ".join(parts)
    if resolved.is_static_analysis:
        cmd = _scan_build(cmd, report=False)
    return cmd


def configure_stage(resolved: ResolvedJob) -> Stage:
    requires = ["cmake"]
    if resolved.is_static_analysis:
        requires.append("scan-build")
    return stage(
        "configure",
        sh("CMake configure", configure_cmd(resolved)),
        requires=requires,
        on_failure=resolved.failure_status,
    )


# ---------------------------------------------------------------------
# Build
# ---------------------------------------------------------------------

def build_cmd(resolved: ResolvedJob) -> str:
    cmd = f"cmake --build {BUILD_DIR} --parallel {resolved.build.parallelism}"
    if resolved.is_static_analysis:
        cmd = _scan_build(cmd, report=True)
    return cmd


def build_stage(resolved: ResolvedJob) -> Stage:
    steps = [sh("Compile", build_cmd(resolved))]
    if not resolved.is_static_analysis:
        steps.append(best_effort("ccache stats", "ccache -s"))
    return stage(
        "build",
        steps_list=steps,
        requires=["cmake"],
        on_failure=resolved.failure_status,
    )
