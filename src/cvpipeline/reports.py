# reports.py
# Post-run reporting: compiler warnings against a threshold, plus the list of
# artifacts produced by the delegated tools for the host to archive.
from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .model import BuildStatus
from .step_workflows.build import ANALYZER_REPORT_DIR, BUILD_DIR
from .step_workflows.checkout import LOG_DIR
from .step_workflows.coverage import COVERAGE_REPORT
from .step_workflows.test import SANITIZER_LOG


# gcc / clang:  src/foo.cc:12:5: warning: unused variable 'x' [-Wunused-variable]
_GCC_WARNING = re.compile(r"^(?P<file>[^\s:]+):(?P<line>\d+):(?:\d+:)?\s+warning:\s+(?P<msg>.*)$")
# msvc:  C:\src\foo.cc(12): warning C4101: 'x': unreferenced local variable
_MSVC_WARNING = re.compile(r"^(?P<file>.+?)\((?P<line>\d+)(?:,\d+)?\):\s+warning\s+(?P<msg>[A-Z]+\d+:.*)$")

ARTIFACT_PATTERNS: Dict[str, List[str]] = {
    "ctest": [f"{BUILD_DIR}/**/Testing/**/Test.xml"],
    "coverage": [COVERAGE_REPORT],
    "sanitizers": [f"{LOG_DIR}/{SANITIZER_LOG}*"],
    "static_analysis": [ANALYZER_REPORT_DIR],
}


@dataclass(frozen=True)
class CompilerWarning:
    file: str
    line: int
    message: str


@dataclass
class WarningReport:
    warnings: List[CompilerWarning] = field(default_factory=list)
    threshold: Optional[int] = None

    @property
    def count(self) -> int:
        return len(self.warnings)

    @property
    def status(self) -> BuildStatus:
        if self.threshold is not None and self.count > self.threshold:
            return BuildStatus.UNSTABLE
        return BuildStatus.SUCCESS


def parse_warnings(lines: Iterable[str]) -> List[CompilerWarning]:
    """Extract compiler warnings, de-duplicated on (file, line, message)."""
    seen: Set[Tuple[str, int, str]] = set()
    out: List[CompilerWarning] = []
    for raw in lines:
        line = raw.rstrip("\r\n")
        m = _GCC_WARNING.match(line) or _MSVC_WARNING.match(line)
        if not m:
            continue
        key = (m.group("file"), int(m.group("line")), m.group("msg").strip())
        if key in seen:
            continue
        seen.add(key)
        out.append(CompilerWarning(file=key[0], line=key[1], message=key[2]))
    return out


def record_warnings(log_files: Iterable[Path], threshold: Optional[int]) -> WarningReport:
    lines: List[str] = []
    for path in log_files:
        if not path.exists():
            continue
        with path.open("r", encoding="utf-8", errors="replace") as f:
            lines.extend(f)
    # the same header warning shows up once per translation unit, across logs too
    return WarningReport(warnings=parse_warnings(lines), threshold=threshold)


def collect_artifacts(workspace: Path) -> Dict[str, List[str]]:
    """
    Return artifact paths (relative to the workspace) grouped by kind.
    Kinds with nothing on disk map to an empty list.
    """
    root = workspace.resolve()
    found: Dict[str, List[str]] = {}
    for kind, patterns in ARTIFACT_PATTERNS.items():
        paths: List[str] = []
        for pat in patterns:
            for p in sorted(root.glob(pat)):
                rel = str(p.relative_to(root)).replace("\\", "/")
                if rel not in paths:
                    paths.append(rel)
        found[kind] = paths
    return found
