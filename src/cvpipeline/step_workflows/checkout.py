# step_workflows/checkout.py
from __future__ import annotations

import shlex
from typing import List

from ..dsl import best_effort, sh, stage
from ..model import Stage, Step
from ..resolver import ResolvedJob


DEFAULT_MANIFEST_URL = "https://github.com/couchbase/manifest.git"
DEFAULT_PATCH_CONFIG = "~/.ssh/patch_via_gerrit.ini"
LOG_DIR = "logs"


# ---------------------------------------------------------------------
# Prepare
# ---------------------------------------------------------------------

def prepare_stage(resolved: ResolvedJob) -> Stage:
    """Reset ccache statistics and drop stale core files."""
    steps: List[Step] = [best_effort("Reset ccache stats", "ccache -z")]
    if resolved.variant != "windows":
        steps.append(best_effort("Remove stale core files", "rm -f /tmp/core.*"))
    return stage("prepare", steps_list=steps)


# ---------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------

def repo_init_cmd(resolved: ResolvedJob, manifest_url: str = DEFAULT_MANIFEST_URL) -> str:
    return " ".join([
        "repo", "init",
        "-u", shlex.quote(manifest_url),
        "-m", shlex.quote(resolved.manifest_file),
        "-g", shlex.quote(resolved.manifest_group),
    ])


def repo_sync_cmd(resolved: ResolvedJob) -> str:
    return f"repo sync --jobs={resolved.build.parallelism}"


def patch_cmd(resolved: ResolvedJob, workspace: str, patch_config: str = DEFAULT_PATCH_CONFIG) -> str:
    # the config path is left unquoted so "~" expands in the shell
    return " ".join([
        "patch_via_gerrit",
        "-c", patch_config,
        "-g", shlex.quote(resolved.trigger.change_id or ""),
        "-s", shlex.quote(workspace),
    ])


def checkout_stage(
    resolved: ResolvedJob,
    workspace: str,
    *,
    manifest_url: str = DEFAULT_MANIFEST_URL,
    patch_config: str = DEFAULT_PATCH_CONFIG,
) -> Stage:
    steps = [
        sh("repo init", repo_init_cmd(resolved, manifest_url)),
        sh("repo sync", repo_sync_cmd(resolved)),
    ]
    if resolved.trigger.kind == "gerrit":
        steps.append(sh("Apply Gerrit change", patch_cmd(resolved, workspace, patch_config)))

    requires = ["repo"]
    if resolved.trigger.kind == "gerrit":
        requires.append("patch_via_gerrit")

    return stage(
        "checkout",
        steps_list=steps,
        requires=requires,
        on_failure=resolved.failure_status,
    )
