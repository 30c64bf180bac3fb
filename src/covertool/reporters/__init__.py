"""Report writers for covertool."""

from covertool.reporters.cobertura import CoberturaReporter, ReportWriteError
from covertool.reporters.terminal import print_summary

__all__ = [
    "CoberturaReporter",
    "ReportWriteError",
    "print_summary",
]
