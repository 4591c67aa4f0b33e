# pipeline_def.py
# The commit-validation pipeline: prepare -> checkout -> configure -> build -> test,
# then the post stages (coverage, reporting) which run regardless of outcome.
from __future__ import annotations

from pathlib import Path
from typing import List

from .dsl import pipeline
from .model import Stage
from .resolver import ResolvedJob
from .step_workflows.build import build_stage, configure_stage
from .step_workflows.checkout import (
    DEFAULT_MANIFEST_URL,
    DEFAULT_PATCH_CONFIG,
    checkout_stage,
    prepare_stage,
)
from .step_workflows.coverage import coverage_stage
from .step_workflows.test import test_stage


def build_pipeline(
    resolved: ResolvedJob,
    workspace: str | Path,
    *,
    manifest_url: str = DEFAULT_MANIFEST_URL,
    patch_config: str = DEFAULT_PATCH_CONFIG,
) -> List[Stage]:
    ws = str(Path(workspace).resolve())
    return pipeline(
        prepare_stage(resolved),
        checkout_stage(resolved, ws, manifest_url=manifest_url, patch_config=patch_config),
        configure_stage(resolved),
        build_stage(resolved),
        test_stage(resolved, ws),
        coverage_stage(resolved) if resolved.build.coverage else None,
    )
