"""Tests for the environment snapshot."""

import pytest

from cvpipeline.config import ConfigError, PipelineEnv, flag


class TestFlag:

    @pytest.mark.parametrize("value", ["1", "true", "TRUE", "yes", "on", " True "])
    def test_truthy(self, value):
        assert flag(value) is True

    @pytest.mark.parametrize("value", [None, "", "0", "false", "no", "off", "maybe"])
    def test_falsy(self, value):
        assert flag(value) is False


class TestPipelineEnv:

    def test_requires_job_name(self):
        with pytest.raises(ConfigError) as exc:
            PipelineEnv.from_environ({})
        assert exc.value.variable == "JOB_NAME"
        assert "JOB_NAME" in str(exc.value)

    def test_blank_job_name_is_missing(self):
        with pytest.raises(ConfigError):
            PipelineEnv.from_environ({"JOB_NAME": "  "})

    def test_defaults(self):
        env = PipelineEnv.from_environ({"JOB_NAME": "kv_engine.linux/master"})
        assert env.parallelism == 8
        assert env.test_parallelism == 8
        assert env.cmake_generator == "Ninja"
        assert env.cmake_args == ""
        assert env.gerrit_port == 29418
        assert env.warning_threshold is None
        assert env.is_go_project is False

    def test_test_parallelism_defaults_to_parallelism(self):
        env = PipelineEnv.from_environ({"JOB_NAME": "x/master", "PARALLELISM": "12"})
        assert env.test_parallelism == 12

    def test_explicit_test_parallelism(self):
        env = PipelineEnv.from_environ({"JOB_NAME": "x/master", "PARALLELISM": "12", "TEST_PARALLELISM": "4"})
        assert env.test_parallelism == 4

    @pytest.mark.parametrize("name", ["PARALLELISM", "TEST_PARALLELISM", "GERRIT_PORT"])
    @pytest.mark.parametrize("value", ["abc", "0", "-3"])
    def test_invalid_numbers_fail_fast(self, name, value):
        with pytest.raises(ConfigError) as exc:
            PipelineEnv.from_environ({"JOB_NAME": "x/master", name: value})
        assert exc.value.variable == name

    def test_warning_threshold(self):
        env = PipelineEnv.from_environ({"JOB_NAME": "x/master", "WARNING_THRESHOLD": "0"})
        assert env.warning_threshold == 0

    def test_negative_warning_threshold(self):
        with pytest.raises(ConfigError) as exc:
            PipelineEnv.from_environ({"JOB_NAME": "x/master", "WARNING_THRESHOLD": "-1"})
        assert exc.value.variable == "WARNING_THRESHOLD"

    def test_go_project(self):
        env = PipelineEnv.from_environ({"JOB_NAME": "indexing.linux/master", "GOPROJECT": "true"})
        assert env.is_go_project is True

    def test_reads_os_environ_by_default(self, monkeypatch):
        monkeypatch.setenv("JOB_NAME", "sigar.macos/master")
        monkeypatch.setenv("ENABLE_ADDRESSSANITIZER", "1")
        env = PipelineEnv.from_environ()
        assert env.job_name == "sigar.macos/master"
        assert env.enable_addresssanitizer is True

    def test_is_immutable(self):
        env = PipelineEnv.from_environ({"JOB_NAME": "x/master"})
        with pytest.raises(AttributeError):
            env.parallelism = 4
