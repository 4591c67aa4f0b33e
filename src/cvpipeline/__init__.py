from .config import ConfigError, PipelineEnv
from .dsl import best_effort, pipeline, sh, stage
from .model import BuildStatus, RunResult, Stage, Step
from .resolver import (
    BuildConfig,
    JobIdentifier,
    ResolvedJob,
    parse_job_identifier,
    resolve,
    resolve_build_flags,
    resolve_manifest,
    resolve_node_label,
    should_run_tests,
)
from .runner import run_pipeline

__all__ = [
    "ConfigError", "PipelineEnv",
    "best_effort", "pipeline", "sh", "stage",
    "BuildStatus", "RunResult", "Stage", "Step",
    "BuildConfig", "JobIdentifier", "ResolvedJob",
    "parse_job_identifier", "resolve", "resolve_build_flags",
    "resolve_manifest", "resolve_node_label", "should_run_tests",
    "run_pipeline",
]
