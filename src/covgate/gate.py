"""
One diff-cover gate run: pick an interpreter, find reports, run diff-cover,
and turn its exit code into success or a CovgateError.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .config import GateConfig, split_csv
from .exceptions import CoverageBelowThresholdError, DiffCoverConfigError, DiffCoverError
from .platforms import detect_host
from .process import run_process
from .reports import expected_locations, find_reports
from .runtime import ProvisionedRuntime, RuntimeContext, provision, verify_custom_python
from .sources import (
    ArchiveSource,
    DirectoryArchiveSource,
    FirstAvailableSource,
    HttpArchiveSource,
)

_logger = logging.getLogger(__name__)

HTML_REPORT_NAME = "diff-cover-report.html"
JSON_REPORT_NAME = "diff-cover-report.json"


@dataclass
class GateOutcome:
    status: str  # "passed", "skipped" or "no-reports"
    reports: List[Path] = field(default_factory=list)
    python: Optional[Path] = None
    command: List[str] = field(default_factory=list)
    output: str = ""


def log_configuration(cfg: GateConfig) -> None:
    if not _logger.isEnabledFor(logging.INFO):
        return
    _logger.info("=== Diff-Cover Configuration ===")
    _logger.info("Project: %s", cfg.project_dir)
    _logger.info("Branch: %s", cfg.branch)
    _logger.info("Fail Under: %g%%", cfg.fail_under)
    _logger.info("Report Formats: %s", cfg.report_formats)
    _logger.info("Output Directory: %s", cfg.output_dir)
    _logger.info("Timeout: %g minutes", cfg.timeout_minutes)
    if cfg.python_executable:
        _logger.info("Custom Python: %s", cfg.python_executable)
    else:
        _logger.info("Using embedded Python (work dir %s)", cfg.runtime_dir)
    if cfg.additional_args:
        _logger.info("Additional Args: %s", cfg.additional_args)
    if cfg.include_patterns:
        _logger.info("Include Patterns: %s", cfg.include_patterns)
    if cfg.exclude_patterns:
        _logger.info("Exclude Patterns: %s", cfg.exclude_patterns)
    _logger.info("================================")


def archive_source_for(cfg: GateConfig) -> ArchiveSource:
    """Configured archive directory (or the bundled one), then the download URL."""
    local = DirectoryArchiveSource(cfg.archive_dir)
    if cfg.archive_url:
        return FirstAvailableSource(local, HttpArchiveSource(cfg.archive_url))
    return local


def setup_python(cfg: GateConfig) -> ProvisionedRuntime:
    if cfg.python_executable and cfg.python_executable.strip():
        exe = cfg.python_executable.strip()
        _logger.info("Using custom Python executable: %s", exe)
        verify_custom_python(exe)
        return ProvisionedRuntime(Path(exe), None, already_installed=False, embedded=False)

    _logger.info("Setting up embedded Python environment...")
    platform = detect_host()
    _logger.info("Detected platform: %s", platform)
    context = RuntimeContext(work_dir=cfg.runtime_dir)
    return provision(context, platform, archive_source_for(cfg))


def build_command(cfg: GateConfig, python: str, reports: Sequence[Path]) -> List[str]:
    """Assemble ``python -m diff_cover ...`` for the given reports."""
    cmd = [str(python), "-m", "diff_cover"]
    cmd.extend(str(Path(r).absolute()) for r in reports)
    cmd.extend(["--compare-branch", cfg.branch])
    cmd.extend(["--fail-under", f"{cfg.fail_under:g}"])

    out_dir = cfg.output_dir.absolute()
    for fmt in cfg.formats:
        if fmt == "html":
            html = out_dir / HTML_REPORT_NAME
            cmd.extend(["--html-report", str(html)])
            _logger.info("HTML report will be generated: %s", html)
        elif fmt == "json":
            json_report = out_dir / JSON_REPORT_NAME
            cmd.extend(["--json-report", str(json_report)])
            _logger.info("JSON report will be generated: %s", json_report)
        elif fmt == "console":
            continue
        else:
            _logger.warning("Unknown report format: %s. Supported: html, json, console", fmt)

    for pattern in split_csv(cfg.include_patterns):
        cmd.extend(["--include", pattern])
    for pattern in split_csv(cfg.exclude_patterns):
        cmd.extend(["--exclude", pattern])

    if cfg.additional_args and cfg.additional_args.strip():
        cmd.extend(shlex.split(cfg.additional_args))
    return cmd


def interpret_exit_code(code: int, cfg: GateConfig, output: str = "") -> None:
    """0 passes; 1 is a coverage failure; anything else is an execution error."""
    if code == 0:
        _logger.info("diff-cover completed successfully - coverage requirements met")
        return
    if code == 1:
        html = cfg.output_dir / HTML_REPORT_NAME
        _logger.error("diff-cover failed: Coverage is below %g%% threshold", cfg.fail_under)
        _logger.error("To fix this:")
        _logger.error("  1. Add more tests for the changed code")
        _logger.error("  2. Lower the threshold with --fail-under <number>")
        _logger.error("  3. Check the HTML report for details: %s", html)
        raise CoverageBelowThresholdError(cfg.fail_under, report_hint=html, output=output)
    if code == 2:
        raise DiffCoverConfigError(
            "diff-cover failed: Invalid arguments or configuration error", 2, output
        )
    raise DiffCoverError(f"diff-cover failed with exit code: {code}", code, output)


def run_gate(cfg: GateConfig) -> GateOutcome:
    """Run the whole gate for ``cfg``; raises a CovgateError on any failure."""
    if cfg.skip:
        _logger.info("Diff-cover execution skipped")
        return GateOutcome("skipped")

    log_configuration(cfg)
    runtime = setup_python(cfg)

    reports = find_reports(cfg.project_dir)
    if not reports:
        _logger.warning(
            "No Jacoco reports found. Make sure tests are run and Jacoco plugin is configured."
        )
        _logger.warning("Expected locations:")
        for location in expected_locations(cfg.project_dir):
            _logger.warning("  - %s", location)
        return GateOutcome("no-reports", python=runtime.executable)

    cmd = build_command(cfg, str(runtime.executable), reports)
    _logger.info("Running diff-cover command:")
    _logger.info("  %s", shlex.join(cmd))

    if {"html", "json"} & set(cfg.formats):
        cfg.output_dir.mkdir(parents=True, exist_ok=True)

    result = run_process(
        cmd,
        cwd=cfg.project_dir,
        timeout=cfg.timeout_seconds,
        stream=cfg.verbose,
    )
    if result.output:
        _logger.debug("diff-cover output:\n%s", result.output)

    interpret_exit_code(result.returncode, cfg, result.output)
    return GateOutcome(
        "passed",
        reports=reports,
        python=runtime.executable,
        command=cmd,
        output=result.output,
    )
