"""
Locate JaCoCo XML reports in a (possibly multi-module) Maven checkout.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterable, List, Optional

_logger = logging.getLogger(__name__)

REPORT_RELATIVE = Path("site") / "jacoco" / "jacoco.xml"
BUILD_DIR_NAME = "target"


def read_pom_modules(pom: Path) -> List[str]:
    """Return the ``<modules><module>`` entries of a pom.xml (namespace agnostic)."""
    try:
        tree = ET.parse(pom)
    except (OSError, ET.ParseError) as e:
        _logger.debug("Could not read modules from %s: %s", pom, e)
        return []

    modules: List[str] = []
    for elem in tree.getroot().iter():
        if elem.tag.rsplit("}", 1)[-1] != "modules":
            continue
        for child in elem:
            if child.tag.rsplit("}", 1)[-1] == "module" and child.text and child.text.strip():
                modules.append(child.text.strip())
    return modules


def _module_report(project_dir: Path, module: str) -> Path:
    return project_dir / module / BUILD_DIR_NAME / REPORT_RELATIVE


def expected_locations(
    project_dir: Path,
    *,
    build_dir: Optional[Path] = None,
    modules: Optional[Iterable[str]] = None,
) -> List[Path]:
    """Where reports would have been picked up from, for the 'none found' hint."""
    project_dir = Path(project_dir).absolute()
    build_dir = Path(build_dir) if build_dir is not None else project_dir / BUILD_DIR_NAME
    if modules is None:
        modules = read_pom_modules(project_dir / "pom.xml")
    return [build_dir / REPORT_RELATIVE] + [_module_report(project_dir, m) for m in modules]


def find_reports(
    project_dir: Path,
    *,
    build_dir: Optional[Path] = None,
    modules: Optional[Iterable[str]] = None,
    scan_subdirs: bool = True,
) -> List[Path]:
    """Collect existing jacoco.xml reports for the project and its modules.

    Looks at, in order: the project's own build directory, each module
    (``modules`` or, when None, those declared in ``pom.xml``), and with
    ``scan_subdirs`` every immediate subdirectory. Paths are absolute and
    returned once each, in discovery order. An empty list means there is
    nothing to check.
    """
    project_dir = Path(project_dir).absolute()
    reports: List[Path] = []

    def _add(candidate: Path, kind: str) -> None:
        candidate = candidate.absolute()
        if candidate.is_file() and candidate not in reports:
            reports.append(candidate)
            _logger.info("Found %s Jacoco report: %s", kind, candidate)

    for i, candidate in enumerate(
        expected_locations(project_dir, build_dir=build_dir, modules=modules)
    ):
        _add(candidate, "project" if i == 0 else "module")

    if scan_subdirs:
        try:
            subdirs = sorted(p for p in project_dir.iterdir() if p.is_dir())
        except OSError as e:
            _logger.debug("Cannot scan %s: %s", project_dir, e)
            subdirs = []
        for subdir in subdirs:
            _add(subdir / BUILD_DIR_NAME / REPORT_RELATIVE, "subproject")

    return reports
