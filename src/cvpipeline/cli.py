# cli.py
from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from cvpipeline.config import ConfigError, PipelineEnv
from cvpipeline.model import BuildStatus
from cvpipeline.pipeline_def import build_pipeline
from cvpipeline.resolver import ResolvedJob, resolve
from cvpipeline.runner import run_pipeline
from cvpipeline.step_workflows.checkout import DEFAULT_MANIFEST_URL, DEFAULT_PATCH_CONFIG
from cvpipeline.ui.console import Console, get_console, set_console


def load_resolved() -> ResolvedJob:
    """
    Snapshot the environment and resolve the job configuration.

    Exits with status 1 on missing or invalid configuration, before any
    step has run.
    """
    console = get_console()
    try:
        return resolve(PipelineEnv.from_environ())
    except ConfigError as e:
        console.print_error(
            "Invalid pipeline configuration",
            str(e),
            suggestion=f"Check {e.variable} in the job environment.\n"
                       "Job names follow <project>.<variant>/<branch>, e.g. kv_engine.linux/master",
        )
        sys.exit(1)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and commands as they run)",
)
@click.pass_context
def cli(ctx, debug):
    """cvpipeline: commit-validation pipeline driven by the job name."""
    # Initialize console with debug flag
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command("resolve")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["env", "json"]),
    default="env",
    show_default=True,
    help="Output format",
)
def resolve_cmd(fmt):
    """Print the configuration derived from the job name and environment."""
    resolved = load_resolved()
    if fmt == "json":
        click.echo(json.dumps(resolved.to_dict(), indent=2, sort_keys=True))
    else:
        get_console().print_resolved(resolved.to_dict())


@cli.command()
@click.option("--workspace", default=".", show_default=True, help="Workspace (checkout root)")
@click.option("--manifest-url", default=DEFAULT_MANIFEST_URL, show_default=True, help="Manifest repository URL")
def plan(workspace, manifest_url):
    """Print the stages and commands a run would execute."""
    console = get_console()
    resolved = load_resolved()
    stages = build_pipeline(resolved, workspace, manifest_url=manifest_url)

    console.print_run_started(resolved.to_dict())
    for stage in stages:
        notes = []
        if stage.post:
            notes.append("post")
        if stage.when is not None:
            notes.append("conditional")
        console.print_header(stage.name + (f" ({', '.join(notes)})" if notes else ""))
        for step in stage.steps:
            console.print_command(step)


@cli.command()
@click.option("--workspace", default=".", show_default=True, help="Workspace (checkout root)")
@click.option("--manifest-url", default=DEFAULT_MANIFEST_URL, show_default=True, help="Manifest repository URL")
@click.option("--patch-config", default=DEFAULT_PATCH_CONFIG, show_default=True, help="patch_via_gerrit config file")
@click.option("--dry-run/--no-dry-run", default=False, help="Print commands instead of running them")
@click.option(
    "--fail-on-unstable/--no-fail-on-unstable",
    default=False,
    show_default=True,
    help="Exit non-zero when the build is unstable",
)
def run(workspace, manifest_url, patch_config, dry_run, fail_on_unstable):
    """Run the commit-validation pipeline."""
    console = get_console()
    resolved = load_resolved()

    ws = Path(workspace)
    if not ws.is_dir():
        console.print_error(
            "Workspace not found",
            f"Could not find workspace directory: {workspace}",
            suggestion="Create the workspace or pass --workspace <dir>",
        )
        sys.exit(1)

    try:
        stages = build_pipeline(
            resolved,
            ws,
            manifest_url=manifest_url,
            patch_config=patch_config,
        )

        console.print_run_started(resolved.to_dict())

        result = run_pipeline(
            stages,
            workspace=ws,
            warning_threshold=resolved.warning_threshold,
            dry_run=dry_run,
        )

        console.print_results(result)

        if result.status is BuildStatus.FAILURE:
            sys.exit(1)
        if result.status is BuildStatus.UNSTABLE and fail_on_unstable:
            sys.exit(1)

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except OSError as e:
        console.print_exception(e)
        sys.exit(1)


if __name__ == "__main__":
    cli()
