"""Tests for job-name driven configuration resolution."""

import pytest

from cvpipeline.config import ConfigError, PipelineEnv
from cvpipeline.model import BuildStatus
from cvpipeline.resolver import (
    DEFAULT_MANIFEST_GROUP,
    DEFAULT_NODE_LABEL,
    failure_status,
    is_silent,
    parse_job_identifier,
    resolve,
    resolve_manifest,
    resolve_node_label,
    resolve_trigger,
    should_run_tests,
)


class TestParseJobIdentifier:

    @pytest.mark.parametrize("suffix", ["silent", "nightly.extra", "x-y_z"])
    def test_suffix_is_ignored(self, suffix):
        job = parse_job_identifier(f"proj.variant.{suffix}/branch")
        assert job.project == "proj"
        assert job.variant == "variant"
        assert job.branch == "branch"
        assert job.suffix == suffix

    def test_no_variant(self):
        job = parse_job_identifier("kv_engine/master")
        assert job.project == "kv_engine"
        assert job.variant is None
        assert job.branch == "master"

    def test_no_branch(self):
        job = parse_job_identifier("kv_engine.windows")
        assert job.variant == "windows"
        assert job.branch is None
        assert job.name == "kv_engine.windows"

    def test_empty_variant_token_is_absent(self):
        assert parse_job_identifier("kv_engine..x/master").variant is None

    @pytest.mark.parametrize("raw", ["", "   ", ".linux/master"])
    def test_missing_project_fails_fast(self, raw):
        with pytest.raises(ConfigError) as exc:
            parse_job_identifier(raw)
        assert exc.value.variable == "JOB_NAME"


class TestResolveNodeLabel:

    def test_windows(self):
        assert resolve_node_label("windows", "master") == "msvc2017 && master"

    def test_macos(self):
        assert resolve_node_label("macos", "master") == "macos && master"

    def test_aarch64(self):
        assert resolve_node_label("aarch64-linux-foo", "release") == "aarch64 && linux && release"
        assert resolve_node_label("aarch64-linux", "b") == "aarch64 && linux && b"

    def test_unknown_falls_back_to_default(self):
        assert resolve_node_label("unknown-variant", "b") == f"{DEFAULT_NODE_LABEL} && b"

    def test_missing_variant_falls_back_to_default(self):
        assert resolve_node_label(None, "b") == f"{DEFAULT_NODE_LABEL} && b"

    def test_exact_match_only_for_windows(self):
        assert resolve_node_label("windows-2019", "b") == f"{DEFAULT_NODE_LABEL} && b"


class TestResolveManifest:

    def test_master_uses_top_level_manifest(self):
        manifest, _ = resolve_manifest("master", "tlm")
        assert manifest == "branch-master.xml"

    def test_other_branch_uses_per_branch_manifest(self):
        manifest, _ = resolve_manifest("6.6.0", "tlm")
        assert manifest == "couchbase-server/6.6.0.xml"

    @pytest.mark.parametrize("project", ["tlm", "sigar"])
    @pytest.mark.parametrize("branch", ["master", "6.6.0"])
    def test_enterprise_group(self, project, branch):
        _, group = resolve_manifest(branch, project)
        assert group == "default,enterprise"

    def test_default_group(self):
        _, group = resolve_manifest("master", "kv_engine")
        assert group == DEFAULT_MANIFEST_GROUP


class TestShouldRunTests:

    def test_static_analysis_never_runs_tests(self):
        assert should_run_tests("clang_analyzer", True, True) is False

    def test_go_project(self):
        assert should_run_tests("linux", False, True) is True

    def test_test_manifest(self):
        assert should_run_tests("linux", True, False) is True

    def test_nothing_to_run(self):
        assert should_run_tests("linux", False, False) is False

    def test_missing_variant(self):
        assert should_run_tests(None, True, False) is True


class TestTrigger:

    def test_silent_uses_whole_name(self):
        assert is_silent("kv_engine.linux.silent/master")
        assert is_silent("kv_engine-silent/master")
        assert not is_silent("kv_engine.linux/master")

    def test_gerrit_trigger(self):
        env = PipelineEnv.from_environ({
            "JOB_NAME": "kv_engine.linux/master",
            "GERRIT_CHANGE_ID": "I1234",
            "GERRIT_PROJECT": "kv_engine",
            "GERRIT_REFSPEC": "refs/changes/34/1234/2",
            "GERRIT_HOST": "review.couchbase.org",
        })
        trigger = resolve_trigger(env)
        assert trigger.kind == "gerrit"
        assert trigger.change_id == "I1234"
        assert trigger.port == 29418
        assert trigger.silent is False

    def test_gerrit_trigger_requires_project(self):
        env = PipelineEnv.from_environ({"JOB_NAME": "x.linux/master", "GERRIT_CHANGE_ID": "I1"})
        with pytest.raises(ConfigError) as exc:
            resolve_trigger(env)
        assert exc.value.variable == "GERRIT_PROJECT"

    def test_cron_trigger(self):
        env = PipelineEnv.from_environ({"JOB_NAME": "x.linux.silent/master", "CRON_SCHEDULE": "H H(0-5) * * *"})
        trigger = resolve_trigger(env)
        assert trigger.kind == "cron"
        assert trigger.schedule == "H H(0-5) * * *"
        assert trigger.silent is True

    def test_manual(self):
        env = PipelineEnv.from_environ({"JOB_NAME": "x/master"})
        assert resolve_trigger(env).kind == "manual"


class TestFailureStatus:

    def test_coverage_makes_failures_unstable(self):
        assert failure_status(True) is BuildStatus.UNSTABLE

    def test_without_coverage_failures_fail(self):
        assert failure_status(False) is BuildStatus.FAILURE


class TestResolve:

    def test_full_resolution(self, make_resolved):
        resolved = make_resolved(JOB_NAME="tlm.aarch64-linux.silent/6.6.0")
        assert resolved.project == "tlm"
        assert resolved.variant == "aarch64-linux"
        assert resolved.branch == "6.6.0"
        assert resolved.node_label == "aarch64 && linux && 6.6.0"
        assert resolved.manifest_file == "couchbase-server/6.6.0.xml"
        assert resolved.manifest_group == "default,enterprise"
        assert resolved.trigger.silent is True

    def test_branch_name_overrides_job_name(self, make_resolved):
        resolved = make_resolved(JOB_NAME="kv_engine.linux/master", BRANCH_NAME="7.0.0")
        assert resolved.branch == "7.0.0"
        assert resolved.node_label.endswith("&& 7.0.0")

    def test_missing_branch_fails_fast(self):
        with pytest.raises(ConfigError) as exc:
            resolve(PipelineEnv.from_environ({"JOB_NAME": "kv_engine.linux"}))
        assert exc.value.variable == "BRANCH_NAME"
        assert "BRANCH_NAME" in str(exc.value)

    def test_static_analysis(self, make_resolved):
        assert make_resolved(JOB_NAME="kv_engine.clang_analyzer/master").is_static_analysis
        assert not make_resolved().is_static_analysis

    def test_to_dict(self, make_resolved):
        d = make_resolved(ENABLE_ADDRESSSANITIZER="true").to_dict()
        assert d["project"] == "kv_engine"
        assert d["sanitizers"] == ["address"]
        assert d["trigger"] == "manual"
        assert "-DCB_ADDRESSSANITIZER=ON" in d["cmake_args"]
