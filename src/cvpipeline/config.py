# config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


# Environment variables the pipeline understands. Anything else is ignored.
RECOGNIZED_VARS = (
    "JOB_NAME",
    "BRANCH_NAME",
    "CRON_SCHEDULE",
    "GERRIT_PROJECT",
    "GERRIT_HOST",
    "GERRIT_PORT",
    "GERRIT_PATCHSET_REVISION",
    "GERRIT_REFSPEC",
    "GERRIT_CHANGE_ID",
    "PARALLELISM",
    "TEST_PARALLELISM",
    "CMAKE_ARGS",
    "CMAKE_GENERATOR",
    "ENABLE_CODE_COVERAGE",
    "ENABLE_THREADSANITIZER",
    "ENABLE_ADDRESSSANITIZER",
    "ENABLE_UNDEFINEDSANITIZER",
    "ENABLE_CBDEPS_TESTING",
    "GOPROJECT",
    "WARNING_THRESHOLD",
)

DEFAULT_PARALLELISM = 8
DEFAULT_CMAKE_GENERATOR = "Ninja"
DEFAULT_GERRIT_PORT = 29418

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ConfigError(Exception):
    """Required configuration is missing or invalid. Raised before any step runs."""

    def __init__(self, variable: str, message: str):
        super().__init__(f"{variable}: {message}")
        self.variable = variable
        self.message = message


def flag(value: Optional[str]) -> bool:
    """Jenkins passes booleans as strings; treat 1/true/yes/on as set."""
    if value is None:
        return False
    return value.strip().lower() in _TRUE_VALUES


def _positive_int(name: str, raw: Optional[str], default: int) -> int:
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigError(name, f"expected a positive integer, got {raw!r}")
    if value < 1:
        raise ConfigError(name, f"expected a positive integer, got {raw!r}")
    return value


def _threshold(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw.strip() == "":
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigError("WARNING_THRESHOLD", f"expected a non-negative integer, got {raw!r}")
    if value < 0:
        raise ConfigError("WARNING_THRESHOLD", f"expected a non-negative integer, got {raw!r}")
    return value


def _clean(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


@dataclass(frozen=True)
class PipelineEnv:
    """
    Immutable snapshot of the recognised environment variables.

    Built once at the boundary (CLI) and passed by value to the resolver.
    Nothing in the pipeline reads os.environ after this point.
    """
    job_name: str
    branch_name: Optional[str] = None
    cron_schedule: Optional[str] = None

    gerrit_project: Optional[str] = None
    gerrit_host: Optional[str] = None
    gerrit_port: int = DEFAULT_GERRIT_PORT
    gerrit_patchset_revision: Optional[str] = None
    gerrit_refspec: Optional[str] = None
    gerrit_change_id: Optional[str] = None

    parallelism: int = DEFAULT_PARALLELISM
    test_parallelism: int = DEFAULT_PARALLELISM
    cmake_args: str = ""
    cmake_generator: str = DEFAULT_CMAKE_GENERATOR

    enable_code_coverage: bool = False
    enable_threadsanitizer: bool = False
    enable_addresssanitizer: bool = False
    enable_undefinedsanitizer: bool = False
    enable_cbdeps_testing: bool = False

    goproject: Optional[str] = None
    warning_threshold: Optional[int] = None

    @property
    def is_go_project(self) -> bool:
        return flag(self.goproject)

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> PipelineEnv:
        """
        Read the recognised variables from a mapping (defaults to os.environ).

        Raises:
            ConfigError: if JOB_NAME is missing or a numeric value is invalid
        """
        env = os.environ if environ is None else environ

        job_name = _clean(env.get("JOB_NAME"))
        if job_name is None:
            raise ConfigError("JOB_NAME", "required but not set")

        parallelism = _positive_int("PARALLELISM", env.get("PARALLELISM"), DEFAULT_PARALLELISM)
        test_parallelism = _positive_int("TEST_PARALLELISM", env.get("TEST_PARALLELISM"), parallelism)

        return cls(
            job_name=job_name,
            branch_name=_clean(env.get("BRANCH_NAME")),
            cron_schedule=_clean(env.get("CRON_SCHEDULE")),
            gerrit_project=_clean(env.get("GERRIT_PROJECT")),
            gerrit_host=_clean(env.get("GERRIT_HOST")),
            gerrit_port=_positive_int("GERRIT_PORT", env.get("GERRIT_PORT"), DEFAULT_GERRIT_PORT),
            gerrit_patchset_revision=_clean(env.get("GERRIT_PATCHSET_REVISION")),
            gerrit_refspec=_clean(env.get("GERRIT_REFSPEC")),
            gerrit_change_id=_clean(env.get("GERRIT_CHANGE_ID")),
            parallelism=parallelism,
            test_parallelism=test_parallelism,
            cmake_args=(env.get("CMAKE_ARGS") or "").strip(),
            cmake_generator=_clean(env.get("CMAKE_GENERATOR")) or DEFAULT_CMAKE_GENERATOR,
            enable_code_coverage=flag(env.get("ENABLE_CODE_COVERAGE")),
            enable_threadsanitizer=flag(env.get("ENABLE_THREADSANITIZER")),
            enable_addresssanitizer=flag(env.get("ENABLE_ADDRESSSANITIZER")),
            enable_undefinedsanitizer=flag(env.get("ENABLE_UNDEFINEDSANITIZER")),
            enable_cbdeps_testing=flag(env.get("ENABLE_CBDEPS_TESTING")),
            goproject=_clean(env.get("GOPROJECT")),
            warning_threshold=_threshold(env.get("WARNING_THRESHOLD")),
        )
