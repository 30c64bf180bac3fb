"""Cobertura XML reporter that renders a :class:`CoverageReport` as Cobertura XML.

Produces the ``coverage-04`` document layout understood by Jenkins, GitLab,
Azure DevOps and most code-review coverage annotators.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from covertool.models import ClassReport, CoverageReport, PackageReport

logger = logging.getLogger(__name__)

DTD_URL = "http://cobertura.sourceforge.net/xml/coverage-04.dtd"

_PROLOG = f'<?xml version="1.0" encoding="utf-8"?>\n<!DOCTYPE coverage SYSTEM "{DTD_URL}">\n'


class ReportWriteError(Exception):
    """Exception raised when the report cannot be written to its destination."""

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(f"Cannot write {path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class CoberturaReporter:
    """Generate Cobertura XML reports from coverage reports."""

    def generate(self, report: CoverageReport, output_path: Path) -> Path:
        """Write a Cobertura XML report file.

        Args:
            report: Aggregated coverage report.
            output_path: Path to write the XML file.

        Returns:
            The path to the generated XML file.

        Raises:
            ReportWriteError: If the file cannot be opened or written.
        """
        write(serialize(report), output_path)
        logger.info("Cobertura XML report written to %s", output_path)
        return output_path

    def generate_string(self, report: CoverageReport) -> str:
        """Return Cobertura XML as a string."""
        return serialize(report).decode("utf-8")


def serialize(report: CoverageReport) -> bytes:
    """Render *report* as a UTF-8 encoded XML document with prolog and doctype."""
    root = _build_xml(report)
    ET.indent(root, space="  ")
    body = ET.tostring(root, encoding="unicode")
    return (_PROLOG + body).encode("utf-8")


def _file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write(data: bytes, output_path: Path | str) -> None:
    """Write serialized XML followed by a newline.

    The data goes to a temporary file beside *output_path* that replaces the
    destination only once fully written, so a failed write never leaves a
    truncated report behind.

    Raises:
        ReportWriteError: If the destination cannot be opened or written.
    """
    path = Path(output_path)
    tmp_name: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as fh:
            tmp_name = fh.name
            fh.write(data)
            fh.write(b"\n")
        os.chmod(tmp_name, _file_mode())
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
        raise ReportWriteError(path, e.strerror or str(e)) from e


def _set_rates(elem: ET.Element, line_rate: str, branch_rate: str, complexity: int) -> None:
    elem.set("line-rate", line_rate)
    elem.set("branch-rate", branch_rate)
    elem.set("complexity", str(complexity))


def _build_class(parent: ET.Element, cls: ClassReport) -> None:
    class_elem = ET.SubElement(parent, "class")
    class_elem.set("name", cls.name)
    class_elem.set("filename", cls.filename)
    _set_rates(class_elem, cls.line_rate, cls.branch_rate, cls.complexity)

    ET.SubElement(class_elem, "methods")
    lines_elem = ET.SubElement(class_elem, "lines")
    for line in cls.lines:
        line_elem = ET.SubElement(lines_elem, "line")
        line_elem.set("number", str(line.number))
        line_elem.set("hits", str(line.hits))


def _build_package(parent: ET.Element, package: PackageReport) -> None:
    package_elem = ET.SubElement(parent, "package")
    package_elem.set("name", package.name)
    _set_rates(package_elem, package.line_rate, package.branch_rate, package.complexity)

    classes_elem = ET.SubElement(package_elem, "classes")
    for cls in package.classes:
        _build_class(classes_elem, cls)


def _build_xml(report: CoverageReport) -> ET.Element:
    """Build the Cobertura element tree from a ``CoverageReport``."""
    coverage = ET.Element("coverage")
    coverage.set("timestamp", str(report.timestamp))
    coverage.set("line-rate", report.line_rate)
    coverage.set("lines-covered", str(report.line_summary.covered))
    coverage.set("lines-valid", str(report.line_summary.valid))
    coverage.set("branch-rate", report.branch_rate)
    coverage.set("branches-covered", str(report.branch_summary.covered))
    coverage.set("branches-valid", str(report.branch_summary.valid))
    coverage.set("complexity", str(report.complexity))
    coverage.set("version", report.version)

    sources = ET.SubElement(coverage, "sources")
    ET.SubElement(sources, "source").text = report.source_root

    packages = ET.SubElement(coverage, "packages")
    for package in report.packages:
        _build_package(packages, package)

    return coverage
