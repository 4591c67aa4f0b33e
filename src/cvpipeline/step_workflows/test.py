# step_workflows/test.py
from __future__ import annotations

from pathlib import Path
from typing import Dict

from ..dsl import sh, stage
from ..model import Stage
from ..resolver import ResolvedJob, should_run_tests
from .build import BUILD_DIR
from .checkout import LOG_DIR


CTEST_TIMEOUT = 500
SANITIZER_LOG = "sanitizers.log"
GO_SOURCE_ROOT = "goproj/src/github.com/couchbase"

_SANITIZER_ENV = {
    "thread": ("TSAN_OPTIONS", "second_deadlock_stack=1"),
    "address": ("ASAN_OPTIONS", "detect_leaks=1"),
    "undefined": ("UBSAN_OPTIONS", "print_stacktrace=1"),
}


def project_build_dir(resolved: ResolvedJob) -> str:
    return f"{BUILD_DIR}/{resolved.project}"


def go_project_dir(resolved: ResolvedJob) -> str:
    return f"{GO_SOURCE_ROOT}/{resolved.project}"


def has_test_manifest(workspace: Path, resolved: ResolvedJob) -> bool:
    """CMake writes CTestTestfile.cmake only for projects that declare tests."""
    return (workspace / project_build_dir(resolved) / "CTestTestfile.cmake").exists()


def sanitizer_env(resolved: ResolvedJob, workspace: str) -> Dict[str, str]:
    log_path = f"{workspace}/{LOG_DIR}/{SANITIZER_LOG}"
    env: Dict[str, str] = {}
    for name in resolved.build.sanitizers:
        var, extra = _SANITIZER_ENV[name]
        env[var] = f"{extra} log_path={log_path}"
    return env


def ctest_cmd(resolved: ResolvedJob) -> str:
    return (
        "ctest --output-on-failure --no-compress-output -T Test"
        f" --timeout {CTEST_TIMEOUT} -j {resolved.build.test_parallelism}"
    )


def go_test_cmd(resolved: ResolvedJob) -> str:
    return f"go test -p {resolved.build.test_parallelism} ./..."


def test_stage(resolved: ResolvedJob, workspace: str) -> Stage:
    """
    Run the project's tests once the build is done.

    Whether there is anything to run is only known after the build, so the
    decision is deferred to the stage's `when` check.
    """
    def _should_run(ws: Path) -> bool:
        return should_run_tests(
            resolved.variant,
            has_test_manifest(ws, resolved),
            resolved.is_go_project,
        )

    if resolved.is_go_project:
        env = {"GOPATH": f"{workspace}/goproj:{workspace}/godeps", "GO111MODULE": "auto"}
        step = sh("Go tests", go_test_cmd(resolved), cwd=go_project_dir(resolved))
        requires = ["go"]
    else:
        env = {}
        step = sh("CTest", ctest_cmd(resolved), cwd=project_build_dir(resolved))
        requires = ["ctest"]
    env.update(sanitizer_env(resolved, workspace))

    return stage(
        "test",
        step,
        env=env,
        requires=requires,
        on_failure=resolved.failure_status,
        when=_should_run,
    )
