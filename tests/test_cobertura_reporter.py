"""Tests for the Cobertura XML reporter."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from defusedxml import ElementTree

from covertool.aggregator import fold_classes, fold_package
from covertool.coverdata import ModuleCoverage
from covertool.models import CoverageReport
from covertool.reporters.cobertura import (
    DTD_URL,
    CoberturaReporter,
    ReportWriteError,
    serialize,
    write,
)


def _report(*modules: ModuleCoverage) -> CoverageReport:
    classes, summary = fold_classes(modules, lambda name: f"src/{name}.erl")
    package = fold_package("Application", classes, summary)
    return CoverageReport(
        timestamp=1700000000000,
        version="1.9.4.1",
        source_root="/work/src",
        packages=(package,),
        line_summary=package.line_summary,
        branch_summary=package.branch_summary,
    )


@pytest.fixture
def reporter() -> CoberturaReporter:
    return CoberturaReporter()


@pytest.fixture
def report() -> CoverageReport:
    return _report(
        ModuleCoverage(name="m1", lines=((1, 5), (2, 0), (3, 2))),
        ModuleCoverage(name="m2", lines=((1, 0),)),
    )


# ── Prolog ───────────────────────────────────────────────────────


def test_prolog_and_doctype(report: CoverageReport) -> None:
    text = serialize(report).decode("utf-8")
    first, second = text.splitlines()[:2]
    assert first == '<?xml version="1.0" encoding="utf-8"?>'
    assert second == f'<!DOCTYPE coverage SYSTEM "{DTD_URL}">'
    assert DTD_URL == "http://cobertura.sourceforge.net/xml/coverage-04.dtd"


def test_generate_string_matches_serialize(
    reporter: CoberturaReporter, report: CoverageReport
) -> None:
    assert reporter.generate_string(report) == serialize(report).decode("utf-8")


# ── Document structure ───────────────────────────────────────────


def test_root_attributes(report: CoverageReport) -> None:
    root = ElementTree.fromstring(serialize(report))
    assert root.tag == "coverage"
    assert root.attrib == {
        "timestamp": "1700000000000",
        "line-rate": "0.500000",
        "lines-covered": "2",
        "lines-valid": "4",
        "branch-rate": "0.0",
        "branches-covered": "0",
        "branches-valid": "0",
        "complexity": "0",
        "version": "1.9.4.1",
    }


def test_sources_and_packages(report: CoverageReport) -> None:
    root = ElementTree.fromstring(serialize(report))
    sources = root.findall("sources/source")
    assert len(sources) == 1
    assert sources[0].text == "/work/src"

    packages = root.findall("packages/package")
    assert len(packages) == 1
    assert packages[0].attrib == {
        "name": "Application",
        "line-rate": "0.500000",
        "branch-rate": "0.0",
        "complexity": "0",
    }


def test_classes(report: CoverageReport) -> None:
    root = ElementTree.fromstring(serialize(report))
    classes = root.findall("packages/package/classes/class")
    assert [c.attrib for c in classes] == [
        {
            "name": "m1",
            "filename": "src/m1.erl",
            "line-rate": "0.666667",
            "branch-rate": "0.0",
            "complexity": "0",
        },
        {
            "name": "m2",
            "filename": "src/m2.erl",
            "line-rate": "0.000000",
            "branch-rate": "0.0",
            "complexity": "0",
        },
    ]
    for cls in classes:
        methods = cls.find("methods")
        assert methods is not None
        assert len(methods) == 0


def test_lines(report: CoverageReport) -> None:
    root = ElementTree.fromstring(serialize(report))
    m1 = root.findall("packages/package/classes/class")[0]
    lines = [(ln.get("number"), ln.get("hits")) for ln in m1.findall("lines/line")]
    assert lines == [("1", "5"), ("2", "0"), ("3", "2")]
    numbers = [ln[0] for ln in lines]
    assert len(numbers) == len(set(numbers))


def test_empty_report() -> None:
    root = ElementTree.fromstring(serialize(_report()))
    assert root.get("line-rate") == "0.0"
    assert root.findall("packages/package/classes/class") == []
    assert root.find("packages/package/classes") is not None


def test_unresolved_filename_is_empty_attribute() -> None:
    classes, summary = fold_classes([ModuleCoverage(name="m")], lambda _name: "")
    package = fold_package("App", classes, summary)
    report = CoverageReport(timestamp=0, version="1.9.4.1", source_root="/", packages=(package,))
    cls = ElementTree.fromstring(serialize(report)).find("packages/package/classes/class")
    assert cls is not None
    assert cls.get("filename") == ""


def test_special_characters_are_escaped() -> None:
    report = _report(ModuleCoverage(name="a<b>&c", lines=((1, 1),)))
    cls = ElementTree.fromstring(serialize(report)).find("packages/package/classes/class")
    assert cls is not None
    assert cls.get("name") == "a<b>&c"


# ── Writing ──────────────────────────────────────────────────────


def test_generate_file(reporter: CoberturaReporter, report: CoverageReport, tmp_path: Path) -> None:
    output = tmp_path / "coverage.xml"
    assert reporter.generate(report, output) == output
    content = output.read_bytes()
    assert content.startswith(b"<?xml")
    assert content.endswith(b"</coverage>\n")
    ElementTree.parse(str(output))


def test_write_appends_newline(tmp_path: Path) -> None:
    output = tmp_path / "out.xml"
    write(b"<coverage />", output)
    assert output.read_bytes() == b"<coverage />\n"


def test_write_missing_directory(tmp_path: Path) -> None:
    output = tmp_path / "missing" / "coverage.xml"
    with pytest.raises(ReportWriteError) as excinfo:
        write(b"<coverage />", output)
    assert excinfo.value.path == output
    assert str(output) in str(excinfo.value)


def test_write_to_directory_fails(tmp_path: Path) -> None:
    with pytest.raises(ReportWriteError):
        write(b"<coverage />", tmp_path)


@pytest.mark.skipif(
    sys.platform == "win32" or (hasattr(os, "geteuid") and os.geteuid() == 0),
    reason="permissions are not enforced",
)
def test_write_permission_denied(tmp_path: Path) -> None:
    locked = tmp_path / "locked"
    locked.mkdir()
    locked.chmod(0o500)
    try:
        with pytest.raises(ReportWriteError, match="Permission denied"):
            write(b"<coverage />", locked / "coverage.xml")
    finally:
        locked.chmod(0o755)


def test_failed_write_keeps_previous_report(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    output = tmp_path / "coverage.xml"
    write(b"<coverage version='old' />", output)

    def fail(src: str, dst: str) -> None:
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(os, "replace", fail)
    with pytest.raises(ReportWriteError, match="No space left on device"):
        write(b"<coverage version='new' />", output)
    assert output.read_bytes() == b"<coverage version='old' />\n"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["coverage.xml"]


def test_write_leaves_no_temporary_files(tmp_path: Path) -> None:
    output = tmp_path / "coverage.xml"
    write(b"<coverage />", output)
    write(b"<coverage />", output)
    assert [p.name for p in tmp_path.iterdir()] == ["coverage.xml"]


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX file modes")
def test_written_report_honours_umask(tmp_path: Path) -> None:
    output = tmp_path / "coverage.xml"
    previous = os.umask(0o022)
    try:
        write(b"<coverage />", output)
    finally:
        os.umask(previous)
    assert output.stat().st_mode & 0o777 == 0o644
