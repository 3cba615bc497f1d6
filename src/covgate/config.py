from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, List, Mapping, Optional

from .exceptions import ConfigError
from .runtime import WORK_DIR_NAME

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(f"Invalid boolean for {name}: {raw!r}")


def _env_number(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"Invalid number for {name}: {raw!r}") from None


def _env_path(env: Mapping[str, str], name: str) -> Optional[Path]:
    raw = env.get(name)
    return Path(raw) if raw else None


def split_csv(value: Optional[str]) -> List[str]:
    """'a, b,,c' -> ['a', 'b', 'c']"""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


# ----------------------------------------------------------------------
# Gate configuration
# ----------------------------------------------------------------------
@dataclass
class GateConfig:
    """Settings for one diff-cover gate run."""

    project_dir: Path = field(default_factory=Path.cwd)

    # Base branch diff-cover compares against
    branch: str = "origin/main"
    # Minimum coverage (%) on changed lines
    fail_under: float = 80.0
    # Comma-separated: html, json, console
    report_formats: str = "html,console"
    skip: bool = False

    # When set, the embedded runtime is not used at all
    python_executable: Optional[str] = None
    additional_args: Optional[str] = None
    include_patterns: Optional[str] = None
    exclude_patterns: Optional[str] = None

    # Defaults to <project>/target
    output_directory: Optional[Path] = None
    timeout_minutes: float = 5.0
    verbose: bool = False

    # Embedded runtime sources: a local directory and/or a download base URL
    archive_dir: Optional[Path] = None
    archive_url: Optional[str] = None
    # Defaults to <project>/.diff-cover-plugin
    work_dir: Optional[Path] = None

    def __post_init__(self) -> None:
        self.project_dir = Path(self.project_dir)
        if self.fail_under < 0 or self.fail_under > 100:
            raise ConfigError(f"fail_under must be between 0 and 100, got {self.fail_under}")
        if self.timeout_minutes <= 0:
            raise ConfigError(f"timeout_minutes must be positive, got {self.timeout_minutes}")

    @property
    def output_dir(self) -> Path:
        if self.output_directory is not None:
            return Path(self.output_directory)
        return self.project_dir / "target"

    @property
    def runtime_dir(self) -> Path:
        if self.work_dir is not None:
            return Path(self.work_dir)
        return self.project_dir / WORK_DIR_NAME

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_minutes * 60

    @property
    def formats(self) -> List[str]:
        return [f.lower() for f in split_csv(self.report_formats)]

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> GateConfig:
        """Load configuration from environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            project_dir=_env_path(env, "COVGATE_PROJECT_DIR") or Path.cwd(),
            branch=env.get("DIFF_COVER_BRANCH") or "origin/main",
            fail_under=_env_number(env, "DIFF_COVER_FAIL_UNDER", 80.0),
            report_formats=env.get("DIFF_COVER_REPORT_FORMATS") or "html,console",
            skip=_env_bool(env, "DIFF_COVER_SKIP", False),
            python_executable=env.get("DIFF_COVER_PYTHON") or None,
            additional_args=env.get("DIFF_COVER_ADDITIONAL_ARGS") or None,
            include_patterns=env.get("DIFF_COVER_INCLUDE") or None,
            exclude_patterns=env.get("DIFF_COVER_EXCLUDE") or None,
            output_directory=_env_path(env, "DIFF_COVER_OUTPUT_DIR"),
            timeout_minutes=_env_number(env, "DIFF_COVER_TIMEOUT_MINUTES", 5.0),
            verbose=_env_bool(env, "DIFF_COVER_VERBOSE", False),
            archive_dir=_env_path(env, "COVGATE_ARCHIVE_DIR"),
            archive_url=env.get("COVGATE_ARCHIVE_URL") or None,
            work_dir=_env_path(env, "COVGATE_WORK_DIR"),
        )

    def with_overrides(self, **overrides: Any) -> GateConfig:
        """Copy with every non-None override applied (CLI flags beat env vars)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
