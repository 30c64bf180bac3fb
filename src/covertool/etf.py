"""Decoder for the Erlang external term format.

Only the decoding direction is implemented, covering the term tags that
``term_to_binary/2`` produces for coverage exports: integers and bignums,
floats, atoms, tuples, lists, strings, binaries, maps and compressed terms.

Decoded values map onto Python types as follows:

- atoms become :class:`Atom` (a ``str`` subclass)
- tuples become ``tuple``, lists and strings become ``list``
- binaries become ``bytes``, maps become ``dict``
- improper lists are returned as :class:`ImproperList`
"""

from __future__ import annotations

import struct
import zlib
from typing import Any

_VERSION = 131

_NEW_FLOAT_EXT = 70
_BIT_BINARY_EXT = 77
_COMPRESSED = 80
_SMALL_INTEGER_EXT = 97
_INTEGER_EXT = 98
_FLOAT_EXT = 99
_ATOM_EXT = 100
_SMALL_TUPLE_EXT = 104
_LARGE_TUPLE_EXT = 105
_NIL_EXT = 106
_STRING_EXT = 107
_LIST_EXT = 108
_BINARY_EXT = 109
_SMALL_BIG_EXT = 110
_LARGE_BIG_EXT = 111
_MAP_EXT = 116
_ATOM_UTF8_EXT = 118
_SMALL_ATOM_UTF8_EXT = 119
_SMALL_ATOM_EXT = 115


class TermDecodeError(Exception):
    """Exception raised when a byte string is not a valid external term."""


class Atom(str):
    """An Erlang atom."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"Atom({str.__repr__(self)})"


class ImproperList(list):  # type: ignore[type-arg]
    """A list whose tail is not ``[]``."""

    def __init__(self, items: list[Any], tail: Any) -> None:
        super().__init__(items)
        self.tail = tail


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def take(self, size: int) -> bytes:
        if size > self.remaining:
            raise TermDecodeError(
                f"Unexpected end of term data (need {size} bytes at offset {self._pos})"
            )
        chunk = self._data[self._pos : self._pos + size]
        self._pos += size
        return chunk

    def unpack(self, fmt: str) -> Any:
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))[0]

    def term(self) -> Any:
        tag = self.unpack(">B")
        if tag == _SMALL_INTEGER_EXT:
            return self.unpack(">B")
        if tag == _INTEGER_EXT:
            return self.unpack(">i")
        if tag in (_ATOM_EXT, _ATOM_UTF8_EXT):
            return self._atom(self.unpack(">H"), utf8=tag == _ATOM_UTF8_EXT)
        if tag in (_SMALL_ATOM_EXT, _SMALL_ATOM_UTF8_EXT):
            return self._atom(self.unpack(">B"), utf8=tag == _SMALL_ATOM_UTF8_EXT)
        if tag == _SMALL_TUPLE_EXT:
            return self._tuple(self.unpack(">B"))
        if tag == _LARGE_TUPLE_EXT:
            return self._tuple(self.unpack(">I"))
        if tag == _NIL_EXT:
            return []
        if tag == _STRING_EXT:
            return list(self.take(self.unpack(">H")))
        if tag == _LIST_EXT:
            return self._list(self.unpack(">I"))
        if tag == _BINARY_EXT:
            return self.take(self.unpack(">I"))
        if tag == _BIT_BINARY_EXT:
            size = self.unpack(">I")
            self.unpack(">B")
            return self.take(size)
        if tag == _SMALL_BIG_EXT:
            return self._big(self.unpack(">B"))
        if tag == _LARGE_BIG_EXT:
            return self._big(self.unpack(">I"))
        if tag == _NEW_FLOAT_EXT:
            return self.unpack(">d")
        if tag == _FLOAT_EXT:
            text = self.take(31).split(b"\x00", 1)[0]
            try:
                return float(text)
            except ValueError as e:
                raise TermDecodeError(f"Bad float term {text!r}") from e
        if tag == _MAP_EXT:
            arity = self.unpack(">I")
            return {_hashable(self.term()): self.term() for _ in range(arity)}
        raise TermDecodeError(f"Unsupported term tag {tag}")

    def _atom(self, length: int, *, utf8: bool) -> Atom:
        raw = self.take(length)
        return Atom(raw.decode("utf-8" if utf8 else "latin-1"))

    def _tuple(self, arity: int) -> tuple[Any, ...]:
        return tuple(self.term() for _ in range(arity))

    def _list(self, length: int) -> list[Any]:
        items = [self.term() for _ in range(length)]
        tail = self.term()
        if isinstance(tail, list) and not tail and not isinstance(tail, ImproperList):
            return items
        return ImproperList(items, tail)

    def _big(self, length: int) -> int:
        sign = self.unpack(">B")
        value = int.from_bytes(self.take(length), "little")
        return -value if sign else value


def _hashable(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_hashable(item) for item in value)
    return value


def binary_to_term(data: bytes) -> Any:
    """Decode one complete external term.

    Raises:
        TermDecodeError: If the data is malformed or has trailing bytes.
    """
    reader = _Reader(data)
    version = reader.unpack(">B")
    if version != _VERSION:
        raise TermDecodeError(f"Bad external term format version {version}")

    if data[1:2] == bytes([_COMPRESSED]):
        reader.take(1)
        size = reader.unpack(">I")
        try:
            inflated = zlib.decompress(reader.take(reader.remaining))
        except zlib.error as e:
            raise TermDecodeError(f"Corrupt compressed term: {e}") from e
        if len(inflated) != size:
            raise TermDecodeError(
                f"Compressed term size mismatch (expected {size}, got {len(inflated)})"
            )
        reader = _Reader(inflated)

    term = reader.term()
    if reader.remaining:
        raise TermDecodeError(f"{reader.remaining} trailing bytes after term")
    return term
