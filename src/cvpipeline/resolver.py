# resolver.py
# Job-convention resolution: everything the pipeline decides is derived here,
# once, from the job name and the environment snapshot.
from __future__ import annotations

import shlex
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Dict, Iterator, List, Optional, Tuple

from .config import ConfigError, PipelineEnv
from .model import BuildStatus


# ---------------------------------------------------------------------
# Lookup tables
# ---------------------------------------------------------------------

# variant -> OS label. Exact matches first, then glob patterns, first match wins.
NODE_LABELS: Dict[str, str] = {
    "windows": "msvc2017",
    "macos": "macos",
}
NODE_LABEL_PATTERNS: List[Tuple[str, str]] = [
    ("aarch64-linux*", "aarch64 && linux"),
]
DEFAULT_NODE_LABEL = "ubuntu-20.04 && large"

REFERENCE_BRANCH = "master"
REFERENCE_MANIFEST = "branch-master.xml"
BRANCH_MANIFEST_DIR = "couchbase-server"

# project -> manifest group
MANIFEST_GROUPS: Dict[str, str] = {
    "tlm": "default,enterprise",
    "sigar": "default,enterprise",
}
DEFAULT_MANIFEST_GROUP = "default"

STATIC_ANALYSIS_VARIANT = "clang_analyzer"

CBDEPS_TESTING_REPO = "http://latestbuilds.service.couchbase.com/builds/releases/cbdeps"
DEFAULT_BUILD_TYPE = "RelWithDebInfo"
COVERAGE_BUILD_TYPE = "Debug"


# ---------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class JobIdentifier:
    """Parsed `<project>.<variant>.<suffix>/<branch>` job name."""
    raw: str
    project: str
    variant: Optional[str] = None
    suffix: Optional[str] = None
    branch: Optional[str] = None

    @property
    def name(self) -> str:
        # job name without the branch part
        return self.raw.split("/", 1)[0]


@dataclass(frozen=True)
class BuildConfig:
    """
    Build-tool configuration composed by resolve_build_flags().

    `base_args` are the user's CMAKE_ARGS, kept verbatim. `options` are the
    -D definitions added on top, in the order they were applied.
    """
    generator: str
    base_args: Tuple[str, ...]
    options: Tuple[Tuple[str, str], ...]
    parallelism: int
    test_parallelism: int
    coverage: bool = False
    sanitizers: Tuple[str, ...] = ()

    @property
    def build_type(self) -> Optional[str]:
        found = _build_type_in(self.base_args)
        if found is not None:
            return found
        return dict(self.options).get("CMAKE_BUILD_TYPE")

    def option(self, name: str) -> Optional[str]:
        return dict(self.options).get(name)

    @property
    def args(self) -> List[str]:
        return list(self.base_args) + [f"-D{k}={v}" for k, v in self.options]

    @property
    def argument_string(self) -> str:
        return " ".join(shlex.quote(a) for a in self.args)


@dataclass(frozen=True)
class Trigger:
    kind: str  # "gerrit" | "cron" | "manual"
    schedule: Optional[str] = None
    change_id: Optional[str] = None
    refspec: Optional[str] = None
    revision: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    project: Optional[str] = None
    silent: bool = False


@dataclass(frozen=True)
class ResolvedJob:
    """Everything derived for one run. Created once at the boundary, passed on."""
    job: JobIdentifier
    branch: str
    node_label: str
    manifest_file: str
    manifest_group: str
    build: BuildConfig
    trigger: Trigger
    is_go_project: bool
    warning_threshold: Optional[int]

    @property
    def project(self) -> str:
        return self.job.project

    @property
    def variant(self) -> Optional[str]:
        return self.job.variant

    @property
    def is_static_analysis(self) -> bool:
        return self.job.variant == STATIC_ANALYSIS_VARIANT

    @property
    def failure_status(self) -> BuildStatus:
        return failure_status(self.build.coverage)

    def to_dict(self) -> dict:
        return {
            "job_name": self.job.raw,
            "project": self.project,
            "variant": self.variant,
            "branch": self.branch,
            "node_label": self.node_label,
            "manifest_file": self.manifest_file,
            "manifest_group": self.manifest_group,
            "cmake_generator": self.build.generator,
            "cmake_args": self.build.argument_string,
            "build_type": self.build.build_type,
            "parallelism": self.build.parallelism,
            "test_parallelism": self.build.test_parallelism,
            "coverage": self.build.coverage,
            "sanitizers": list(self.build.sanitizers),
            "trigger": self.trigger.kind,
            "cron_schedule": self.trigger.schedule,
            "silent": self.trigger.silent,
            "gerrit_change_id": self.trigger.change_id,
            "go_project": self.is_go_project,
            "warning_threshold": self.warning_threshold,
        }


# ---------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------

def parse_job_identifier(raw: str) -> JobIdentifier:
    """
    Split a job name on "/" (branch) then on "." (fields).

    A job name without a variant token is accepted; variant is None and the
    resolvers fall back to their default case.
    """
    if raw is None or not raw.strip():
        raise ConfigError("JOB_NAME", "job name is empty")

    raw = raw.strip()
    name, _, branch = raw.partition("/")
    fields = name.split(".")
    project = fields[0]
    if not project:
        raise ConfigError("JOB_NAME", f"no project in job name {raw!r}")

    variant = fields[1] if len(fields) > 1 and fields[1] else None
    suffix = ".".join(fields[2:]) or None

    return JobIdentifier(
        raw=raw,
        project=project,
        variant=variant,
        suffix=suffix,
        branch=branch or None,
    )


def resolve_node_label(variant: Optional[str], branch: str) -> str:
    os_label = NODE_LABELS.get(variant or "")
    if os_label is None:
        os_label = DEFAULT_NODE_LABEL
        for pattern, label in NODE_LABEL_PATTERNS:
            if variant and fnmatchcase(variant, pattern):
                os_label = label
                break
    return f"{os_label} && {branch}"


def resolve_manifest(branch: str, project: str) -> Tuple[str, str]:
    if branch == REFERENCE_BRANCH:
        manifest_file = REFERENCE_MANIFEST
    else:
        manifest_file = f"{BRANCH_MANIFEST_DIR}/{branch}.xml"
    return manifest_file, MANIFEST_GROUPS.get(project, DEFAULT_MANIFEST_GROUP)


def _cache_definitions(args) -> Iterator[Tuple[str, str]]:
    # -DNAME=value, -DNAME:TYPE=value, or "-D" followed by NAME[:TYPE]=value
    it = iter(args)
    for arg in it:
        if arg == "-D":
            definition = next(it, "")
        elif arg.startswith("-D"):
            definition = arg[2:]
        else:
            continue
        name, sep, value = definition.partition("=")
        if sep:
            yield name.partition(":")[0], value


def _build_type_in(args) -> Optional[str]:
    found = None
    for name, value in _cache_definitions(args):
        if name == "CMAKE_BUILD_TYPE":
            # the last definition on the command line wins
            found = value
    return found


def resolve_build_flags(env: PipelineEnv, variant: Optional[str]) -> BuildConfig:
    """
    Compose the CMake configuration from the environment snapshot.

    Each override appends to the option list; order follows the checks below.
    CMAKE_BUILD_TYPE is added last and only if nothing set it already.
    """
    base_args = tuple(shlex.split(env.cmake_args)) if env.cmake_args else ()
    options: List[Tuple[str, str]] = []
    sanitizers: List[str] = []

    if env.enable_code_coverage:
        options.append(("CB_CODE_COVERAGE", "ON"))
    if env.enable_threadsanitizer:
        options.append(("CB_THREADSANITIZER", "ON"))
        sanitizers.append("thread")
    if env.enable_addresssanitizer:
        options.append(("CB_ADDRESSSANITIZER", "ON"))
        sanitizers.append("address")
    if env.enable_undefinedsanitizer:
        options.append(("CB_UNDEFINEDSANITIZER", "ON"))
        sanitizers.append("undefined")
    if env.enable_cbdeps_testing:
        options.append(("CB_DOWNLOAD_DEPS_REPO", CBDEPS_TESTING_REPO))
    if variant == STATIC_ANALYSIS_VARIANT:
        # ccache hides compilations from scan-build
        options.append(("COUCHBASE_DISABLE_CCACHE", "ON"))
    if env.cmake_generator.lower() == "ninja":
        options.append(("CB_PARALLEL_LINK_JOBS", str(max(1, env.parallelism // 4))))

    if _build_type_in(base_args) is None:
        build_type = COVERAGE_BUILD_TYPE if env.enable_code_coverage else DEFAULT_BUILD_TYPE
        options.append(("CMAKE_BUILD_TYPE", build_type))

    return BuildConfig(
        generator=env.cmake_generator,
        base_args=base_args,
        options=tuple(options),
        parallelism=env.parallelism,
        test_parallelism=env.test_parallelism,
        coverage=env.enable_code_coverage,
        sanitizers=tuple(sanitizers),
    )


def should_run_tests(variant: Optional[str], has_test_manifest: bool, is_go_project: bool) -> bool:
    if variant == STATIC_ANALYSIS_VARIANT:
        return False
    return is_go_project or has_test_manifest


def is_silent(job_name: str) -> bool:
    """Silent jobs build and test but never vote back on the review."""
    return "silent" in job_name


def failure_status(coverage_enabled: bool) -> BuildStatus:
    # With coverage on, a failing tool must not stop coverage collection from
    # being published, so the run is only marked unstable.
    return BuildStatus.UNSTABLE if coverage_enabled else BuildStatus.FAILURE


def resolve_trigger(env: PipelineEnv) -> Trigger:
    silent = is_silent(env.job_name)
    if env.gerrit_change_id:
        if not env.gerrit_project:
            raise ConfigError("GERRIT_PROJECT", "required for Gerrit-triggered runs")
        return Trigger(
            kind="gerrit",
            change_id=env.gerrit_change_id,
            refspec=env.gerrit_refspec,
            revision=env.gerrit_patchset_revision,
            host=env.gerrit_host,
            port=env.gerrit_port,
            project=env.gerrit_project,
            silent=silent,
        )
    if env.cron_schedule:
        return Trigger(kind="cron", schedule=env.cron_schedule, silent=silent)
    return Trigger(kind="manual", silent=silent)


def resolve(env: PipelineEnv) -> ResolvedJob:
    """
    Derive the full job configuration.

    Raises:
        ConfigError: when the branch cannot be determined or the Gerrit
            trigger is incomplete
    """
    job = parse_job_identifier(env.job_name)
    branch = env.branch_name or job.branch
    if not branch:
        raise ConfigError("BRANCH_NAME", "required but not set and no branch in JOB_NAME")

    manifest_file, manifest_group = resolve_manifest(branch, job.project)

    return ResolvedJob(
        job=job,
        branch=branch,
        node_label=resolve_node_label(job.variant, branch),
        manifest_file=manifest_file,
        manifest_group=manifest_group,
        build=resolve_build_flags(env, job.variant),
        trigger=resolve_trigger(env),
        is_go_project=env.is_go_project,
        warning_threshold=env.warning_threshold,
    )
