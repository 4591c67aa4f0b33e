"""Tests for warning recording and artifact collection."""

from cvpipeline.model import BuildStatus
from cvpipeline.reports import collect_artifacts, parse_warnings, record_warnings


BUILD_LOG = """\
[1/3] Building CXX object kv_engine/CMakeFiles/foo.dir/foo.cc.o
kv_engine/foo.cc:12:5: warning: unused variable 'x' [-Wunused-variable]
kv_engine/foo.h:3: warning: declaration shadows a local variable
C:\\jenkins\\kv_engine\\bar.cc(40): warning C4101: 'y': unreferenced local variable
kv_engine/foo.cc:12:5: warning: unused variable 'x' [-Wunused-variable]
kv_engine/baz.cc:7:1: error: expected ';'
$ cmake --build build --parallel 8
"""


class TestParseWarnings:

    def test_gcc_clang_and_msvc(self):
        warnings = parse_warnings(BUILD_LOG.splitlines())
        assert [(w.file, w.line) for w in warnings] == [
            ("kv_engine/foo.cc", 12),
            ("kv_engine/foo.h", 3),
            ("C:\\jenkins\\kv_engine\\bar.cc", 40),
        ]
        assert warnings[0].message == "unused variable 'x' [-Wunused-variable]"
        assert warnings[2].message.startswith("C4101:")

    def test_errors_are_not_warnings(self):
        assert parse_warnings(["a.cc:1:1: error: boom"]) == []


class TestRecordWarnings:

    def test_threshold(self, tmp_path):
        log = tmp_path / "build.log"
        log.write_text(BUILD_LOG)
        assert record_warnings([log], threshold=2).status is BuildStatus.UNSTABLE
        assert record_warnings([log], threshold=3).status is BuildStatus.SUCCESS

    def test_no_threshold_never_unstable(self, tmp_path):
        log = tmp_path / "build.log"
        log.write_text(BUILD_LOG)
        report = record_warnings([log], threshold=None)
        assert report.count == 3
        assert report.status is BuildStatus.SUCCESS

    def test_duplicates_across_logs(self, tmp_path):
        a = tmp_path / "a.log"
        b = tmp_path / "b.log"
        a.write_text("x.h:1:1: warning: w\n")
        b.write_text("x.h:1:1: warning: w\n")
        assert record_warnings([a, b], threshold=None).count == 1

    def test_missing_log_is_not_fatal(self, tmp_path):
        assert record_warnings([tmp_path / "nope.log"], threshold=0).count == 0


class TestCollectArtifacts:

    def test_collects_known_artifacts(self, tmp_path):
        test_xml = tmp_path / "build" / "kv_engine" / "Testing" / "20240101-0000" / "Test.xml"
        test_xml.parent.mkdir(parents=True)
        test_xml.write_text("<Site/>")
        (tmp_path / "coverage.xml").write_text("<coverage/>")
        (tmp_path / "logs").mkdir()
        (tmp_path / "logs" / "sanitizers.log.1234").write_text("ERROR: AddressSanitizer")
        (tmp_path / "clangScanBuildReports").mkdir()

        found = collect_artifacts(tmp_path)
        assert found["ctest"] == ["build/kv_engine/Testing/20240101-0000/Test.xml"]
        assert found["coverage"] == ["coverage.xml"]
        assert found["sanitizers"] == ["logs/sanitizers.log.1234"]
        assert found["static_analysis"] == ["clangScanBuildReports"]

    def test_nothing_produced(self, tmp_path):
        found = collect_artifacts(tmp_path)
        assert all(paths == [] for paths in found.values())
