import logging

from covgate.reports import (
    REPORT_RELATIVE,
    expected_locations,
    find_reports,
    read_pom_modules,
)


def _report(root, *parts):
    path = root.joinpath(*parts, "target", "site", "jacoco", "jacoco.xml")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("<report/>")
    return path


def test_read_pom_modules_with_namespace(jacoco_project):
    assert read_pom_modules(jacoco_project / "pom.xml") == ["core"]


def test_read_pom_modules_without_namespace(tmp_path):
    pom = tmp_path / "pom.xml"
    pom.write_text(
        "<project><modules><module> api </module><module>web</module>"
        "<module></module></modules></project>"
    )
    assert read_pom_modules(pom) == ["api", "web"]


def test_read_pom_modules_missing_or_broken(tmp_path):
    assert read_pom_modules(tmp_path / "pom.xml") == []
    broken = tmp_path / "broken.xml"
    broken.write_text("<project><modules>")
    assert read_pom_modules(broken) == []


def test_project_then_module_reports(jacoco_project, caplog):
    caplog.set_level(logging.INFO, logger="covgate.reports")

    reports = find_reports(jacoco_project)

    assert reports == [
        (jacoco_project / "target" / REPORT_RELATIVE).absolute(),
        (jacoco_project / "core" / "target" / REPORT_RELATIVE).absolute(),
    ]
    messages = [r.getMessage() for r in caplog.records]
    assert any(m.startswith("Found project Jacoco report") for m in messages)
    assert any(m.startswith("Found module Jacoco report") for m in messages)


def test_undeclared_subprojects_found_when_scanning(tmp_path):
    _report(tmp_path, "zeta")
    _report(tmp_path, "alpha")

    reports = find_reports(tmp_path)

    assert [p.parts[-5] for p in reports] == ["alpha", "zeta"]
    assert find_reports(tmp_path, scan_subdirs=False) == []


def test_reports_are_not_duplicated(jacoco_project):
    reports = find_reports(jacoco_project, scan_subdirs=True)
    assert len(reports) == len(set(reports)) == 2


def test_explicit_modules_and_build_dir(tmp_path):
    custom_build = tmp_path / "out"
    (custom_build / REPORT_RELATIVE).parent.mkdir(parents=True)
    (custom_build / REPORT_RELATIVE).write_text("<report/>")
    _report(tmp_path, "svc")

    reports = find_reports(tmp_path, build_dir=custom_build, modules=["svc"], scan_subdirs=False)

    assert reports == [
        (custom_build / REPORT_RELATIVE).absolute(),
        (tmp_path / "svc" / "target" / REPORT_RELATIVE).absolute(),
    ]


def test_nothing_found(tmp_path):
    project = tmp_path / "empty"
    project.mkdir()
    assert find_reports(project) == []


def test_expected_locations_lists_modules(jacoco_project):
    locations = expected_locations(jacoco_project)
    assert locations[0] == jacoco_project.absolute() / "target" / REPORT_RELATIVE
    assert locations[1] == jacoco_project.absolute() / "core" / "target" / REPORT_RELATIVE
    assert len(locations) == 2
