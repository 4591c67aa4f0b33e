# src/cvpipeline/dsl.py
from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .model import BuildStatus, Stage, Step


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(name: str, cmd: str, *, cwd: str | None = None) -> Step:
    """Create a shell step."""
    return Step(name=name, run=cmd, cwd=cwd)


def best_effort(name: str, cmd: str, *, cwd: str | None = None) -> Step:
    """Create a shell step whose failure is ignored (cleanup, stats)."""
    return Step(name=name, run=cmd, cwd=cwd, allow_failure=True)


# ---------------------------------------------------------------------
# Stage helper
# ---------------------------------------------------------------------

def stage(
    name: str,
    *steps: Step,  # allow: stage("x", sh(...), sh(...))
    steps_list: Optional[List[Step]] = None,
    env: Optional[Dict[str, str]] = None,
    requires: Optional[List[str]] = None,
    post: bool = False,
    on_failure: BuildStatus = BuildStatus.FAILURE,
    when: Optional[Callable[[Path], bool]] = None,
    cwd: str | None = None,  # default cwd applied to steps missing cwd
) -> Stage:
    steps_final: List[Step] = []
    if steps_list:
        steps_final.extend(list(steps_list))
    steps_final.extend(list(steps))

    if not steps_final:
        raise ValueError(f"stage({name!r}) must have at least one step")

    if cwd is not None:
        steps_final = [s if s.cwd is not None else replace(s, cwd=cwd) for s in steps_final]

    return Stage(
        name=name,
        steps=steps_final,
        # force values to str for env compatibility
        env={k: str(v) for k, v in (env or {}).items()},
        requires=requires or [],
        post=post,
        on_failure=on_failure,
        when=when,
    )


# ---------------------------------------------------------------------
# Pipeline helper
# ---------------------------------------------------------------------

def pipeline(*stages: Optional[Stage]) -> List[Stage]:
    """
    Ordered list of stages. `None` entries are dropped so optional stages
    can be written inline:

        pipeline(
            prepare_stage(...),
            coverage_stage(...) if coverage else None,
        )
    """
    result = [s for s in stages if s is not None]
    names = [s.name for s in result]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ValueError(f"Duplicate stage names found: {dupes}")
    return result
