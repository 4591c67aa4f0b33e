# runner.py
from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .model import RunResult, Stage, StageResult, Step
from .reports import collect_artifacts, record_warnings
from .step_workflows.checkout import LOG_DIR
from .ui.console import get_console


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

@dataclass
class CIError(Exception):
    """
    Structured pipeline error with enough context for:
      - clean CLI output
      - debugging without full tracebacks
    """
    kind: str
    stage: str
    step: str | None
    message: str
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}", f"stage={self.stage}"]
        if self.step:
            lines.append(f"step={self.step}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


@dataclass
class StepFailure(Exception):
    stage: str
    step: str
    cmd: str
    exit_code: int
    output: str = ""
    hint: Optional[str] = None

    def __str__(self) -> str:
        return f"[{self.stage}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"


TOOL_HINTS = {
    "repo": "Install the repo tool (https://gerrit.googlesource.com/git-repo) or fix PATH.",
    "patch_via_gerrit": "Install patch_via_gerrit (pip install patch_via_gerrit) or fix PATH.",
    "cmake": "Install CMake or fix PATH.",
    "ctest": "Install CMake (includes ctest) or fix PATH.",
    "go": "Install Go or fix PATH.",
    "gcovr": "Install gcovr (e.g., pip install gcovr).",
    "scan-build": "Install clang-tools (provides scan-build) or fix PATH.",
}

# shell exit status for "command not found"
_EXIT_NOT_FOUND = 127
_OUTPUT_TAIL = 4000

# stages whose output is scanned for compiler warnings
WARNING_STAGES = ("build",)


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _hint_for(stage: Stage, step: Step) -> Optional[str]:
    for tool in stage.requires:
        if f" {tool} " in f" {step.run} ":
            return TOOL_HINTS.get(tool, f"Install {tool} or fix PATH.")
    return None


def _run_step(
    stage: Stage,
    step: Step,
    workspace: Path,
    log_path: Path,
    base_env: Mapping[str, str],
) -> None:
    cwd = (workspace / (step.cwd or ".")).resolve()
    if not cwd.exists():
        raise CIError(
            kind="cwd_missing",
            stage=stage.name,
            step=step.name,
            message=f"working directory not found: {cwd}",
        )

    env = dict(base_env)
    env.update(stage.env or {})

    proc = subprocess.run(
        step.run,
        shell=True,
        cwd=str(cwd),
        env=env,
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
    )

    with log_path.open("a", encoding="utf-8") as log:
        log.write(f"$ {step.run}\n")
        log.write(proc.stdout or "")

    if proc.returncode != 0:
        hint = _hint_for(stage, step) if proc.returncode == _EXIT_NOT_FOUND else None
        raise StepFailure(
            stage=stage.name,
            step=step.name,
            cmd=step.run,
            exit_code=proc.returncode,
            output=(proc.stdout or "")[-_OUTPUT_TAIL:],
            hint=hint,
        )


def _run_stage(stage: Stage, workspace: Path, log_path: Path, base_env: Mapping[str, str]) -> None:
    """Run the stage's steps in order. Raises on the first non best-effort failure."""
    console = get_console()
    for step in stage.steps:
        console.print_step(step.name)
        console.print_debug(f"$ {step.run}")
        try:
            _run_step(stage, step, workspace, log_path, base_env)
        except StepFailure as e:
            if not step.allow_failure:
                raise
            console.print_info(f"  (ignored) {step.name} exited with {e.exit_code}")


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def stage_log_path(workspace: Path, stage_name: str) -> Path:
    return workspace / LOG_DIR / f"{stage_name}.log"


def run_pipeline(
    stages: List[Stage],
    *,
    workspace: str | Path = ".",
    warning_threshold: Optional[int] = None,
    dry_run: bool = False,
    base_env: Optional[Mapping[str, str]] = None,
) -> RunResult:
    """
    Run stages sequentially and aggregate the build status.

    A failing stage marks the run with its `on_failure` status and skips the
    remaining main stages. Post stages and reporting always run.
    """
    console = get_console()
    ws = Path(workspace).resolve()
    env: Dict[str, str] = dict(os.environ if base_env is None else base_env)
    result = RunResult()
    aborted = False
    logs: Dict[str, Path] = {}

    for stage in stages:
        if aborted and not stage.post:
            console.print_stage_skipped(stage.name, "earlier stage failed")
            result.stages.append(StageResult(stage.name, "skipped", detail="earlier stage failed"))
            continue

        if stage.when is not None and not stage.when(ws):
            console.print_stage_skipped(stage.name, "condition not met")
            result.stages.append(StageResult(stage.name, "skipped", detail="condition not met"))
            continue

        console.print_stage_start(stage.name)

        if dry_run:
            for step in stage.steps:
                console.print_command(step)
            result.stages.append(StageResult(stage.name, "ok", detail="dry run"))
            continue

        log_path = stage_log_path(ws, stage.name)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        # workspaces are reused between runs
        log_path.unlink(missing_ok=True)
        logs[stage.name] = log_path

        try:
            _run_stage(stage, ws, log_path, env)
        except StepFailure as e:
            console.print_failure(
                e.step,
                e.output or str(e),
                exit_code=e.exit_code,
                hint=e.hint,
            )
            result.mark(stage.on_failure)
            result.stages.append(StageResult(stage.name, "failed", str(log_path), detail=str(e)))
            if not stage.post:
                aborted = True
            continue
        except CIError as e:
            console.print_failure(e.step or stage.name, str(e))
            result.mark(stage.on_failure)
            result.stages.append(StageResult(stage.name, "failed", str(log_path), detail=e.message))
            if not stage.post:
                aborted = True
            continue

        console.print_success(stage.name)
        result.stages.append(StageResult(stage.name, "ok", str(log_path)))

    _report(result, ws, warning_threshold, logs)
    return result


def _report(
    result: RunResult,
    workspace: Path,
    warning_threshold: Optional[int],
    logs: Mapping[str, Path],
) -> None:
    console = get_console()
    console.print_stage_start("report")

    # only logs written by this run count
    compiled = [logs[name] for name in WARNING_STAGES if name in logs]
    warnings = record_warnings(compiled, warning_threshold)
    result.warnings = warnings.count
    result.mark(warnings.status)
    console.print_warnings(warnings.count, warning_threshold)

    result.artifacts = collect_artifacts(workspace)
    for kind, paths in result.artifacts.items():
        console.print_artifacts(kind, paths)

    result.stages.append(StageResult("report", "ok", detail=f"{warnings.count} warning(s)"))
