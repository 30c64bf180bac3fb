"""Fold per-line hit counts into class and package summaries."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from covertool.models import ZERO, ClassReport, LineEntry, PackageReport, Summary

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from covertool.coverdata import ModuleCoverage

logger = logging.getLogger(__name__)


def fold_lines(facts: Iterable[tuple[int, int]]) -> tuple[tuple[LineEntry, ...], Summary]:
    """Turn ``(line, hits)`` pairs into line entries and their summary.

    Input order is preserved.
    """
    entries: list[LineEntry] = []
    summary = ZERO
    for line, hits in facts:
        entries.append(LineEntry(number=line, hits=hits))
        summary = summary.merge(Summary(covered=1 if hits != 0 else 0, valid=1))
    return tuple(entries), summary


def fold_classes(
    modules: Iterable[ModuleCoverage],
    resolve: Callable[[str], str],
) -> tuple[tuple[ClassReport, ...], Summary]:
    """Build one class report per module and the merged line summary.

    Args:
        modules: Imported modules, in report order.
        resolve: Maps a module name to its source path (``""`` if unknown).

    Returns:
        The class reports and the merge of their line summaries.
    """
    classes: list[ClassReport] = []
    total = ZERO
    for module in modules:
        filename = resolve(module.name)
        lines, summary = fold_lines(module.lines)
        classes.append(
            ClassReport(
                name=module.name,
                filename=filename,
                lines=lines,
                line_summary=summary,
                branch_summary=ZERO,
            )
        )
        total = total.merge(summary)
        logger.debug(
            "Class %s (%s): %d/%d lines covered",
            module.name,
            filename or "<unresolved>",
            summary.covered,
            summary.valid,
        )
    return tuple(classes), total


def fold_package(
    name: str,
    classes: tuple[ClassReport, ...],
    summary: Summary | None = None,
) -> PackageReport:
    """Wrap already aggregated classes in a single package."""
    if summary is None:
        summary = ZERO
        for cls in classes:
            summary = summary.merge(cls.line_summary)
    branches = ZERO
    for cls in classes:
        branches = branches.merge(cls.branch_summary)
    return PackageReport(
        name=name,
        classes=classes,
        line_summary=summary,
        branch_summary=branches,
    )
