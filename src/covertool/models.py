"""Coverage report models."""

from __future__ import annotations

from dataclasses import dataclass


def rate(covered: int, valid: int) -> str:
    """Return the coverage ratio ``covered / valid`` as a Cobertura rate string.

    A zero ``valid`` count is not an error: modules and packages without
    countable lines report ``"0.0"``.
    """
    if valid == 0:
        return "0.0"
    return f"{covered / valid:.6f}"


@dataclass(frozen=True)
class Summary:
    """Covered/valid counter pair for lines or branches."""

    covered: int = 0
    """Number of entries executed at least once."""

    valid: int = 0
    """Number of countable entries."""

    def merge(self, other: Summary) -> Summary:
        """Return the sum of two summaries."""
        return Summary(covered=self.covered + other.covered, valid=self.valid + other.valid)

    def __add__(self, other: Summary) -> Summary:
        return self.merge(other)

    @property
    def rate(self) -> str:
        """Formatted coverage ratio of this summary."""
        return rate(self.covered, self.valid)


ZERO = Summary()


@dataclass(frozen=True)
class LineEntry:
    """Hit count for a single source line."""

    number: int
    hits: int

    @property
    def is_covered(self) -> bool:
        """Return True if this line was executed at least once."""
        return self.hits > 0


@dataclass(frozen=True)
class ClassReport:
    """Coverage of one source module (a Cobertura ``<class>``)."""

    name: str
    """Module name."""

    filename: str
    """Source path relative to the source root, empty when unresolved."""

    lines: tuple[LineEntry, ...] = ()
    """Line entries in ascending line order."""

    line_summary: Summary = ZERO
    branch_summary: Summary = ZERO
    complexity: int = 0

    @property
    def line_rate(self) -> str:
        return self.line_summary.rate

    @property
    def branch_rate(self) -> str:
        return self.branch_summary.rate


@dataclass(frozen=True)
class PackageReport:
    """Coverage of a group of classes (a Cobertura ``<package>``)."""

    name: str
    classes: tuple[ClassReport, ...] = ()
    line_summary: Summary = ZERO
    branch_summary: Summary = ZERO
    complexity: int = 0

    @property
    def line_rate(self) -> str:
        return self.line_summary.rate

    @property
    def branch_rate(self) -> str:
        return self.branch_summary.rate


@dataclass(frozen=True)
class CoverageReport:
    """Complete coverage report, the root of the Cobertura document."""

    timestamp: int
    """Generation time in milliseconds since the epoch."""

    version: str
    """Emulated Cobertura version written to the ``version`` attribute."""

    source_root: str
    """Absolute path of the source directory."""

    packages: tuple[PackageReport, ...] = ()
    line_summary: Summary = ZERO
    branch_summary: Summary = ZERO
    complexity: int = 0

    @property
    def line_rate(self) -> str:
        return self.line_summary.rate

    @property
    def branch_rate(self) -> str:
        return self.branch_summary.rate

    @property
    def classes(self) -> tuple[ClassReport, ...]:
        """All classes across every package, in document order."""
        return tuple(cls for package in self.packages for cls in package.classes)
