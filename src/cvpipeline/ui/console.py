"""
Output for pipeline runs and the CLI. Progress goes to stdout; errors and
--debug output go to stderr.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..model import RunResult, Step


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{title}")
        print("-" * len(title))

    def print_run_started(self, resolved: dict) -> None:
        """Print run start information from a resolved job dict."""
        print("\nPIPELINE STARTED")
        print(f"Job: {resolved['job_name']}")
        print(f"Project: {resolved['project']}")
        print(f"Variant: {resolved['variant'] or '(default)'}")
        print(f"Branch: {resolved['branch']}")
        print(f"Node label: {resolved['node_label']}")
        print(f"Trigger: {resolved['trigger']}")
        print()

    def print_resolved(self, resolved: dict) -> None:
        """Print resolved configuration as KEY=value lines."""
        for key, value in resolved.items():
            if isinstance(value, list):
                value = ",".join(value)
            elif isinstance(value, bool):
                value = "true" if value else "false"
            elif value is None:
                value = ""
            print(f"{key.upper()}={value}")

    def print_stage_start(self, name: str) -> None:
        """Print stage start message."""
        print(f"\nSTAGE: {name}")

    def print_stage_skipped(self, name: str, reason: str) -> None:
        """Print stage skipped message."""
        print(f"\nSTAGE: {name}")
        print(f"STATUS: skipped ({reason})")

    def print_step(self, name: str) -> None:
        """Print step start message."""
        print(f"STEP: {name}")

    def print_command(self, step: Step) -> None:
        """Print the command a step would run (plan / dry run)."""
        suffix = " (best effort)" if step.allow_failure else ""
        where = f" [in {step.cwd}]" if step.cwd else ""
        print(f"  $ {step.run}{where}{suffix}")

    def print_success(self, name: str) -> None:
        """Print success message."""
        print("STATUS: success")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        """
        Print step failure message.

        Args:
            name: Step name
            reason: Failure reason or captured tool output
            exit_code: Optional exit code
            hint: Optional hint for user
        """
        print(f"STEP FAILED: {name}")
        if exit_code is not None:
            print(f"Exit code: {exit_code}")
        if hint:
            print(f"Hint: {hint}")
        if self.debug:
            print(f"Error details: {reason}")
        else:
            # Show last line of output for non-debug mode
            lines = [line for line in (reason or "").splitlines() if line.strip()]
            print(f"Error: {lines[-1] if lines else 'Unknown error'}")

    def print_warnings(self, count: int, threshold: Optional[int]) -> None:
        if threshold is None:
            print(f"WARNINGS: {count}")
        else:
            print(f"WARNINGS: {count} (threshold {threshold})")

    def print_artifacts(self, kind: str, paths: list[str]) -> None:
        if paths:
            print(f"ARTIFACTS ({kind}): {', '.join(paths)}")
        else:
            print(f"ARTIFACTS ({kind}): none")

    def print_results(self, result: RunResult) -> None:
        """Print final results summary."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for stage in result.stages:
            status_display = status_label(stage.status)
            if stage.detail and stage.status != "ok":
                status_display = f"{status_display} ({stage.detail.splitlines()[0]})"
            print(f"  {stage.name}: {status_display}")
        print(f"\nBUILD STATUS: {result.status.value}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """Report a configuration or workspace error on stderr before any stage runs."""
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Unexpected errors: traceback with --debug, one line otherwise."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Plain progress line, e.g. an ignored best-effort failure."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Commands as they run, shown with --debug only."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


def status_label(status: str) -> str:
    return "SUCCESS" if status == "ok" else status.upper()


# the cli group callback installs one carrying the --debug flag
_console: Optional[Console] = None


def get_console() -> Console:
    """Console shared by the runner and the CLI commands."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    global _console
    _console = console
