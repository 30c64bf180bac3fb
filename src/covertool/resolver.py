"""Map module names to source files under a source root."""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)

SOURCE_EXTENSION = ".erl"


class SourceRootError(Exception):
    """Exception raised when the source root cannot be scanned."""


def _sort_key(relative: str) -> tuple[int, str]:
    return (len(PurePosixPath(relative).parts), relative)


class SourceResolver:
    """Resolve module names to paths relative to ``source_root``.

    The directory tree is scanned once, on first lookup, and every later
    lookup is answered from that index. When several files share a module's
    name, the one with the fewest path components wins, then the
    lexicographically smallest relative path.
    """

    def __init__(self, source_root: Path | str, extension: str = SOURCE_EXTENSION) -> None:
        self.source_root = Path(source_root)
        self.extension = extension
        self._index: dict[str, list[str]] | None = None

    def _scan(self) -> dict[str, list[str]]:
        root = self.source_root
        if not root.is_dir():
            raise SourceRootError(f"Source directory {root} does not exist or is not a directory")

        def _raise(error: OSError) -> None:
            raise SourceRootError(
                f"Cannot read source directory {error.filename or root}: {error.strerror or error}"
            ) from error

        index: dict[str, list[str]] = {}
        for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise):
            for filename in filenames:
                if not filename.endswith(self.extension):
                    continue
                relative = Path(dirpath, filename).relative_to(root).as_posix()
                index.setdefault(filename, []).append(relative)

        for candidates in index.values():
            candidates.sort(key=_sort_key)
        logger.debug("Indexed %d source file name(s) under %s", len(index), root)
        return index

    def resolve(self, module_name: str) -> str:
        """Return the source path of *module_name*, or ``""`` if none exists.

        Raises:
            SourceRootError: If the source root is missing or unreadable.
        """
        if self._index is None:
            self._index = self._scan()

        candidates = self._index.get(module_name + self.extension, [])
        if not candidates:
            logger.debug("No source file found for module %s", module_name)
            return ""
        if len(candidates) > 1:
            logger.debug(
                "Module %s matches %d files, using %s", module_name, len(candidates), candidates[0]
            )
        return candidates[0].lstrip("/")

    __call__ = resolve


def resolve(module_name: str, source_root: Path | str) -> str:
    """Resolve a single module without keeping the directory index."""
    return SourceResolver(source_root).resolve(module_name)
