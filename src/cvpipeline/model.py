# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional


class BuildStatus(str, Enum):
    """Overall result of a stage or run. Ordered: SUCCESS < UNSTABLE < FAILURE."""
    SUCCESS = "SUCCESS"
    UNSTABLE = "UNSTABLE"
    FAILURE = "FAILURE"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    def worst(self, other: BuildStatus) -> BuildStatus:
        return self if self.severity >= other.severity else other


_SEVERITY = {
    BuildStatus.SUCCESS: 0,
    BuildStatus.UNSTABLE: 1,
    BuildStatus.FAILURE: 2,
}


@dataclass(frozen=True)
class Step:
    """A single shell command inside a pipeline stage."""
    name: str
    run: str
    cwd: str | None = None
    # best-effort steps (cache cleanup, core file removal) may fail silently
    allow_failure: bool = False


@dataclass
class Stage:
    """
    A pipeline stage: ordered steps plus metadata for the runner.

    `post` stages run even after an earlier stage failed (reporting).
    `on_failure` is the status a failing step gives the run.
    """
    name: str
    steps: list[Step]

    env: Dict[str, str] = field(default_factory=dict)
    post: bool = False
    on_failure: BuildStatus = BuildStatus.FAILURE

    # External tools the stage needs on PATH (used for hints on failure)
    requires: list[str] = field(default_factory=list)

    # Evaluated against the workspace right before the stage runs;
    # a false result skips the stage.
    when: Optional[Callable[[Path], bool]] = None


@dataclass(frozen=True)
class StageResult:
    name: str
    status: str  # "ok" | "failed" | "skipped"
    log_path: Optional[str] = None
    detail: str = ""


@dataclass
class RunResult:
    """What a pipeline run produced: per-stage results plus the aggregate status."""
    status: BuildStatus = BuildStatus.SUCCESS
    stages: List[StageResult] = field(default_factory=list)
    warnings: int = 0
    artifacts: Dict[str, List[str]] = field(default_factory=dict)

    def mark(self, status: BuildStatus) -> None:
        self.status = self.status.worst(status)
