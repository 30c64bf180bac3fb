"""Reader for Erlang ``cover`` export files (``*.coverdata``).

``cover:export/1`` writes a stream of length-prefixed external terms. Each
record starts with a one-byte size followed by that many bytes of term data.
Records larger than 255 bytes are preceded by a small ``{'$size', N}`` header
term giving the length of the real record.

For every module the export contains, in order:

- ``{file, Module, SourceOrBeam}``
- ``{Module, Clauses}`` (clause table, not needed for line coverage)
- one or more lists of ``{{bump, Module, Function, Arity, Clause, Line}, Count}``,
  or, in exports from older releases, one such pair per record
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from covertool.etf import Atom, TermDecodeError, binary_to_term

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)

_SIZE_MARKER = "$size"
_FILE_RECORD_ARITY = 3
_PAIR_ARITY = 2
_BUMP_ARITY = 6
_BUMP_LINE_INDEX = 5


class DataImportError(Exception):
    """Exception raised when a cover data file is missing, unreadable or malformed."""


@dataclass(frozen=True)
class CoverageFact:
    """One instrumented line of one module with its execution count."""

    module: str
    line: int
    hits: int


@dataclass(frozen=True)
class ModuleCoverage:
    """Per-line execution counts for a single module."""

    name: str
    lines: tuple[tuple[int, int], ...] = ()
    """``(line_number, hits)`` pairs, ascending and unique by line number."""


@dataclass(frozen=True)
class CoverData:
    """Imported coverage data, modules sorted by name."""

    modules: tuple[ModuleCoverage, ...] = ()

    @property
    def module_names(self) -> list[str]:
        return [module.name for module in self.modules]

    def facts(self) -> Iterator[CoverageFact]:
        """Yield every ``(module, line, hits)`` fact in report order."""
        for module in self.modules:
            for line, hits in module.lines:
                yield CoverageFact(module=module.name, line=line, hits=hits)


def _is_tuple(term: Any, arity: int) -> bool:
    return isinstance(term, tuple) and len(term) == arity


def _is_bump_key(term: Any) -> bool:
    return _is_tuple(term, _BUMP_ARITY) and term[0] == "bump"


def _is_size_header(term: Any) -> bool:
    if isinstance(term, int) and not isinstance(term, bool):
        return True
    return _is_tuple(term, _PAIR_ARITY) and term[0] == _SIZE_MARKER and isinstance(term[1], int)


def _take(data: bytes, pos: int, size: int, path: Path) -> bytes:
    chunk = data[pos : pos + size]
    if len(chunk) != size:
        raise DataImportError(f"{path}: truncated record at offset {pos}")
    return chunk


def _decode(chunk: bytes, pos: int, path: Path) -> Any:
    try:
        return binary_to_term(chunk)
    except TermDecodeError as e:
        raise DataImportError(f"{path}: corrupt record at offset {pos}: {e}") from e


def _iter_records(data: bytes, path: Path) -> Iterator[Any]:
    pos = 0
    while pos < len(data):
        size = data[pos]
        pos += 1
        term = _decode(_take(data, pos, size, path), pos, path)
        pos += size
        if _is_size_header(term):
            size = term if isinstance(term, int) else term[1]
            term = _decode(_take(data, pos, size, path), pos, path)
            pos += size
        yield term


def _add_bumps(
    records: list[Any],
    counts: dict[str, dict[int, int]],
    path: Path,
) -> None:
    for item in records:
        if not _is_tuple(item, _PAIR_ARITY):
            raise DataImportError(f"{path}: unexpected bump entry {item!r}")
        key, count = item
        if not (
            _is_bump_key(key)
            and isinstance(key[1], Atom)
            and isinstance(key[_BUMP_LINE_INDEX], int)
            and isinstance(count, int)
        ):
            raise DataImportError(f"{path}: unexpected bump entry {item!r}")
        line = key[_BUMP_LINE_INDEX]
        if line == 0:
            # Compiler-generated clauses carry no source line.
            continue
        counts[str(key[1])][line] += count


def _read_file(path: Path, counts: dict[str, dict[int, int]]) -> None:
    try:
        data = path.read_bytes()
    except OSError as e:
        raise DataImportError(f"Cannot read cover data {path}: {e.strerror or e}") from e

    seen = 0
    for record in _iter_records(data, path):
        if _is_tuple(record, _FILE_RECORD_ARITY) and record[0] == "file":
            counts.setdefault(str(record[1]), defaultdict(int))
            seen += 1
        elif _is_tuple(record, _PAIR_ARITY) and isinstance(record[0], Atom):
            counts.setdefault(str(record[0]), defaultdict(int))
        elif _is_tuple(record, _PAIR_ARITY) and _is_bump_key(record[0]):
            _add_bumps([record], counts, path)
        elif isinstance(record, list):
            _add_bumps(record, counts, path)
        else:
            raise DataImportError(f"{path}: unexpected record {record!r}")
    logger.debug("Read %d module(s) from %s", seen, path)


def read_coverdata(paths: Iterable[Path | str]) -> CoverData:
    """Import one or more cover data files.

    Counts for the same module and line are summed across files. Modules
    are ordered by name and lines by line number.

    Raises:
        DataImportError: If any file is missing, unreadable or malformed.
    """
    counts: dict[str, dict[int, int]] = defaultdict(lambda: defaultdict(int))
    for path in paths:
        _read_file(Path(path), counts)

    modules = tuple(
        ModuleCoverage(name=name, lines=tuple(sorted(counts[name].items())))
        for name in sorted(counts)
    )
    logger.info(
        "Imported %d module(s), %d line(s)",
        len(modules),
        sum(len(module.lines) for module in modules),
    )
    return CoverData(modules=modules)
