"""Shared fixtures: an external term encoder and cover data file writers."""

from __future__ import annotations

import struct
import zlib
from typing import TYPE_CHECKING, Any

import pytest

from covertool.etf import Atom

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

_MAX_RECORD = 255


def _encode(term: Any) -> bytes:
    if isinstance(term, Atom):
        raw = term.encode("utf-8")
        return bytes([119, len(raw)]) + raw
    if isinstance(term, int):
        if 0 <= term < 256:
            return bytes([97, term])
        if -(2**31) <= term < 2**31:
            return b"b" + struct.pack(">i", term)
        digits = abs(term).to_bytes((abs(term).bit_length() + 7) // 8, "little")
        return bytes([110, len(digits), 1 if term < 0 else 0]) + digits
    if isinstance(term, float):
        return b"F" + struct.pack(">d", term)
    if isinstance(term, str):
        if not term:
            return bytes([106])
        raw = term.encode("latin-1")
        return b"k" + struct.pack(">H", len(raw)) + raw
    if isinstance(term, bytes):
        return b"m" + struct.pack(">I", len(term)) + term
    if isinstance(term, tuple):
        return bytes([104, len(term)]) + b"".join(_encode(item) for item in term)
    if isinstance(term, list):
        if not term:
            return bytes([106])
        body = b"".join(_encode(item) for item in term)
        return b"l" + struct.pack(">I", len(term)) + body + bytes([106])
    if isinstance(term, dict):
        body = b"".join(_encode(k) + _encode(v) for k, v in term.items())
        return b"t" + struct.pack(">I", len(term)) + body
    raise TypeError(f"cannot encode {term!r}")


def term_to_binary(term: Any, *, compressed: bool = False) -> bytes:
    """Encode *term* the way ``erlang:term_to_binary/2`` does."""
    body = _encode(term)
    if compressed:
        return b"\x83P" + struct.pack(">I", len(body)) + zlib.compress(body)
    return b"\x83" + body


def cover_record(term: Any, *, compressed: bool = False) -> bytes:
    """Frame one term as a cover export record."""
    data = term_to_binary(term, compressed=compressed)
    if len(data) > _MAX_RECORD:
        header = term_to_binary((Atom("$size"), len(data)))
        return bytes([len(header)]) + header + data
    return bytes([len(data)]) + data


def bump(module: str, line: int, count: int, clause: int = 1) -> tuple[Any, int]:
    return ((Atom("bump"), Atom(module), Atom("f"), 0, clause, line), count)


def coverdata_bytes(
    modules: dict[str, list[tuple[int, int]]],
    *,
    compressed: bool = False,
) -> bytes:
    """Build a cover export holding ``(line, count)`` bumps per module."""
    out = bytearray()
    for name, lines in modules.items():
        out += cover_record((Atom("file"), Atom(name), f"/build/src/{name}.erl"))
        clauses = [(Atom(name), Atom("f"), 0, 1, len(lines))]
        out += cover_record((Atom(name), clauses), compressed=compressed)
        if lines:
            bumps = [bump(name, line, count) for line, count in lines]
            out += cover_record(bumps, compressed=compressed)
    return bytes(out)


@pytest.fixture
def write_coverdata(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper writing a cover export file under ``tmp_path``."""

    def _write(
        modules: dict[str, list[tuple[int, int]]],
        name: str = "all.coverdata",
        *,
        compressed: bool = False,
    ) -> Path:
        path = tmp_path / name
        path.write_bytes(coverdata_bytes(modules, compressed=compressed))
        return path

    return _write


@pytest.fixture
def write_source() -> Callable[[Path, str], Path]:
    """Return a helper creating an empty source file at ``root/rel``."""

    def _write(root: Path, rel: str) -> Path:
        f = root / rel
        f.parent.mkdir(parents=True, exist_ok=True)
        f.write_text("-module(x).\n", encoding="utf-8")
        return f

    return _write
