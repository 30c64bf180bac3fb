"""Assemble imported coverage data into a :class:`CoverageReport`."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from covertool.aggregator import fold_classes, fold_package
from covertool.models import CoverageReport
from covertool.resolver import SourceResolver

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from covertool.config import CovertoolConfig
    from covertool.coverdata import ModuleCoverage

logger = logging.getLogger(__name__)

COBERTURA_VERSION = "1.9.4.1"
"""Cobertura release the generated reports claim to come from."""


def _now_ms() -> int:
    return int(time.time() * 1000)


def build_report(
    modules: Iterable[ModuleCoverage],
    config: CovertoolConfig,
    *,
    resolver: Callable[[str], str] | None = None,
    clock: Callable[[], int] = _now_ms,
) -> CoverageReport:
    """Build the report tree for one run.

    Args:
        modules: Imported modules in report order.
        config: Run configuration (source root and application name).
        resolver: Module name to source path lookup. Defaults to a
            :class:`SourceResolver` over ``config.source_root``.
        clock: Returns the current time in milliseconds since the epoch.

    Raises:
        SourceRootError: If the source root cannot be scanned.
    """
    timestamp = clock()
    if resolver is None:
        resolver = SourceResolver(config.source_root)

    classes, summary = fold_classes(modules, resolver)
    package = fold_package(config.app_name, classes, summary)

    logger.info(
        "Built report for %s: %d class(es), %d/%d lines covered",
        package.name,
        len(classes),
        summary.covered,
        summary.valid,
    )
    # One package only, so the report totals are the package totals.
    return CoverageReport(
        timestamp=timestamp,
        version=COBERTURA_VERSION,
        source_root=str(config.source_root.absolute()),
        packages=(package,),
        line_summary=package.line_summary,
        branch_summary=package.branch_summary,
    )
