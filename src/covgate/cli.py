from __future__ import annotations

import logging
import platform as host_platform
from pathlib import Path
from typing import Any, Callable, Optional

import click

from . import __version__
from .config import GateConfig
from .env_loader import load_env_files
from .exceptions import CoverageBelowThresholdError, CovgateError, DiffCoverError
from .gate import archive_source_for, run_gate
from .logging_config import configure_logging
from .platforms import detect, detect_host
from .reports import expected_locations, find_reports
from .runtime import DIFF_COVER_VERSION, PYTHON_VERSION, RuntimeContext, provision
from .sources import describe_archives

_logger = logging.getLogger(__name__)

_DIR = click.Path(file_okay=False, dir_okay=True, path_type=Path)


def _load_config(**overrides: Any) -> GateConfig:
    """Environment (and .env) defaults, overridden by whatever flags were given."""
    try:
        return GateConfig.from_env().with_overrides(**overrides)
    except CovgateError as e:
        raise click.ClickException(str(e)) from None


def runtime_options(fn: Callable) -> Callable:
    """Options shared by every command that touches the embedded runtime."""
    fn = click.option(
        "--work-dir",
        type=_DIR,
        default=None,
        help="Cache directory for extracted runtimes [default: <project>/.diff-cover-plugin].",
    )(fn)
    fn = click.option(
        "--archive-url",
        default=None,
        help="Base URL to download python-<platform>.tar.gz from when not found locally.",
    )(fn)
    fn = click.option(
        "--archive-dir",
        type=_DIR,
        default=None,
        help="Directory containing python-<platform>.tar.gz archives.",
    )(fn)
    fn = click.option(
        "--project-dir",
        type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
        default=None,
        help="Project root [default: current directory].",
    )(fn)
    return fn


@click.group(
    context_settings={"help_option_names": ["-h", "--help"]},
    invoke_without_command=True,
)
@click.version_option(__version__, "--version", prog_name="covgate")
@click.option(
    "-v",
    "--verbose",
    "loglevel",
    flag_value=logging.INFO,
    default=None,
    help="Enable INFO logs.",
)
@click.option(
    "-vv",
    "--very-verbose",
    "loglevel",
    flag_value=logging.DEBUG,
    help="Enable DEBUG logs.",
)
@click.pass_context
def cli(ctx: click.Context, loglevel: Optional[int]) -> None:
    """Diff coverage gate. Fails when changed lines are not covered enough."""
    configure_logging(loglevel)
    load_env_files()
    _logger.debug("CLI start, version=%s", __version__)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command("run")
@runtime_options
@click.option("--branch", default=None, help="Branch to compare against [default: origin/main].")
@click.option(
    "--fail-under",
    type=click.FloatRange(0, 100),
    default=None,
    help="Minimum coverage % on changed lines [default: 80].",
)
@click.option(
    "--report-formats",
    default=None,
    help="Comma-separated html,json,console [default: html,console].",
)
@click.option(
    "--python",
    "python_executable",
    default=None,
    help="Use this interpreter instead of the embedded one.",
)
@click.option(
    "--additional-args", default=None, help="Extra arguments passed to diff-cover verbatim."
)
@click.option(
    "--include", "include_patterns", default=None, help="Comma-separated glob patterns to include."
)
@click.option(
    "--exclude", "exclude_patterns", default=None, help="Comma-separated glob patterns to exclude."
)
@click.option(
    "--output-dir",
    "output_directory",
    type=_DIR,
    default=None,
    help="Where HTML/JSON reports go [default: <project>/target].",
)
@click.option(
    "--timeout-minutes",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Kill diff-cover after this long [default: 5].",
)
@click.option(
    "--live-output", "verbose", is_flag=True, help="Stream diff-cover output in real time."
)
@click.option("--skip", is_flag=True, help="Do nothing and exit successfully.")
def run_cmd(skip: bool, verbose: bool, **options: Any) -> None:
    """Run diff-cover against the project's JaCoCo reports."""
    cfg = _load_config(skip=skip or None, verbose=verbose or None, **options)

    try:
        outcome = run_gate(cfg)
    except DiffCoverError as e:
        if e.output:
            click.echo(e.output)
        if isinstance(e, CoverageBelowThresholdError):
            click.echo(f"❌ {e}", err=True)
            raise SystemExit(1) from None
        raise click.ClickException(str(e)) from None
    except CovgateError as e:
        raise click.ClickException(str(e)) from None

    if outcome.status == "skipped":
        click.echo("diff-cover execution skipped.")
    elif outcome.status == "no-reports":
        click.echo("No Jacoco reports found; nothing to check.")
    else:
        if outcome.output:
            click.echo(outcome.output)
        click.echo("✅ diff-cover passed: coverage requirements met.")


@cli.command("provision")
@runtime_options
def provision_cmd(**options: Any) -> None:
    """Extract the embedded Python and install diff-cover into it."""
    cfg = _load_config(**options)
    try:
        platform = detect_host()
        runtime = provision(
            RuntimeContext(work_dir=cfg.runtime_dir), platform, archive_source_for(cfg)
        )
    except CovgateError as e:
        raise click.ClickException(str(e)) from None

    state = "already installed" if runtime.already_installed else "installed"
    click.echo(f"Platform: {platform}")
    click.echo(f"Python: {runtime.executable}")
    click.echo(f"diff-cover {DIFF_COVER_VERSION}: {state}")


@cli.command("platform")
@click.option("--os", "os_name", default=None, help="OS name to classify instead of the host's.")
@click.option(
    "--arch", "os_arch", default=None, help="Architecture to classify instead of the host's."
)
def platform_cmd(os_name: Optional[str], os_arch: Optional[str]) -> None:
    """Print the platform key used to pick the embedded Python."""
    try:
        if os_name is None and os_arch is None:
            key = detect_host()
        else:
            key = detect(os_name or host_platform.system(), os_arch or host_platform.machine())
    except CovgateError as e:
        raise click.ClickException(str(e)) from None
    click.echo(key.value)


@cli.command("reports")
@click.option(
    "--project-dir",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Project root [default: current directory].",
)
@click.option(
    "--no-scan-subdirs", is_flag=True, help="Only look at the project and declared modules."
)
def reports_cmd(project_dir: Optional[Path], no_scan_subdirs: bool) -> None:
    """List the JaCoCo reports diff-cover would be run against."""
    cfg = _load_config(project_dir=project_dir)
    reports = find_reports(cfg.project_dir, scan_subdirs=not no_scan_subdirs)
    if not reports:
        click.echo("No Jacoco reports found. Expected locations:")
        for location in expected_locations(cfg.project_dir):
            click.echo(f"  - {location}")
        return
    for report in reports:
        click.echo(str(report))


@cli.command("info")
@click.option(
    "--archive-dir",
    type=_DIR,
    default=None,
    help="Directory containing python-<platform>.tar.gz archives.",
)
def info_cmd(archive_dir: Optional[Path]) -> None:
    """Show pinned versions and which embedded runtimes are available."""
    cfg = _load_config(archive_dir=archive_dir)
    click.echo(f"covgate {__version__}")
    click.echo(f"Embedded Python version: {PYTHON_VERSION}")
    click.echo(f"diff-cover version: {DIFF_COVER_VERSION}")
    click.echo(describe_archives(archive_source_for(cfg)))
