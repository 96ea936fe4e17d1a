"""Helpers for property-list values held as plain Python objects.

Dictionaries are ``dict``, arrays ``list``, booleans ``bool``, integers ``int``,
data ``bytes``, strings ``str``, reals ``float`` and dates ``datetime``.
"""

from __future__ import annotations

import copy
import datetime
import plistlib
import re
from enum import Enum, auto
from typing import Any, Mapping, MutableMapping

_UINT_MASK = (1 << 64) - 1
_UINT_PREFIX = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")


class _Kind(Enum):
    BOOLEAN = auto()
    INT = auto()
    REAL = auto()
    STRING = auto()
    DATA = auto()
    DATE = auto()
    DICT = auto()
    ARRAY = auto()
    UID = auto()
    OTHER = auto()


def _kind(value: Any) -> _Kind:
    if isinstance(value, bool):
        return _Kind.BOOLEAN
    if isinstance(value, plistlib.UID):
        return _Kind.UID
    if isinstance(value, int):
        return _Kind.INT
    if isinstance(value, float):
        return _Kind.REAL
    if isinstance(value, str):
        return _Kind.STRING
    if isinstance(value, (bytes, bytearray)):
        return _Kind.DATA
    if isinstance(value, datetime.datetime):
        return _Kind.DATE
    if isinstance(value, Mapping):
        return _Kind.DICT
    if isinstance(value, (list, tuple)):
        return _Kind.ARRAY
    return _Kind.OTHER


def _lookup(source: Any, key: str, source_key: str | None) -> Any:
    if not isinstance(source, Mapping):
        return None
    return source.get(source_key if source_key is not None else key)


def copy_item(target: MutableMapping, source: Any, key: str, source_key: str | None = None) -> bool:
    """Copy any value from ``source`` into ``target[key]``; return whether it existed."""
    value = _lookup(source, key, source_key)
    if value is None:
        return False
    target[key] = copy.deepcopy(value)
    return True


def copy_bool(target: MutableMapping, source: Any, key: str, source_key: str | None = None) -> bool:
    """Copy a boolean value; return False if it is missing or not a boolean."""
    value = _lookup(source, key, source_key)
    if _kind(value) is not _Kind.BOOLEAN:
        return False
    target[key] = bool(value)
    return True


def copy_uint(target: MutableMapping, source: Any, key: str, source_key: str | None = None) -> bool:
    """Copy an integer value; return False if it is missing or not an integer."""
    value = _lookup(source, key, source_key)
    if _kind(value) is not _Kind.INT:
        return False
    target[key] = int(value)
    return True


def copy_data(target: MutableMapping, source: Any, key: str, source_key: str | None = None) -> bool:
    """Copy a data value; return False if it is missing or not data."""
    value = _lookup(source, key, source_key)
    if _kind(value) is not _Kind.DATA:
        return False
    target[key] = bytes(value)
    return True


def copy_string(target: MutableMapping, source: Any, key: str, source_key: str | None = None) -> bool:
    """Copy a string value; return False if it is missing or not a string."""
    value = _lookup(source, key, source_key)
    if _kind(value) is not _Kind.STRING:
        return False
    target[key] = str(value)
    return True


def get_bool(node: Any, key: str) -> bool:
    """Read ``node[key]`` as a boolean; absent or unsuitable values read as False."""
    if not isinstance(node, Mapping):
        return False
    value = node.get(key)
    kind = _kind(value)
    if kind is _Kind.BOOLEAN:
        return bool(value)
    if kind is _Kind.INT:
        return value != 0
    if kind is _Kind.STRING:
        return value == "true"
    return False


def _parse_uint(text: str) -> int:
    match = _UINT_PREFIX.match(text)
    if not match:
        return 0
    sign, digits = match.groups()
    if digits[:2] in ("0x", "0X"):
        number = int(digits[2:], 16)
    elif len(digits) > 1 and digits.startswith("0"):
        number = int(digits[1:], 8)
    else:
        number = int(digits, 10)
    if sign == "-":
        number = -number
    return number & _UINT_MASK


def get_uint(node: Any, key: str) -> int:
    """Read ``node[key]`` as an unsigned integer; absent or unsuitable values read as 0."""
    if not isinstance(node, Mapping):
        return 0
    value = node.get(key)
    kind = _kind(value)
    if kind is _Kind.INT:
        return value & _UINT_MASK
    if kind is _Kind.STRING:
        return _parse_uint(value)
    if kind is _Kind.DATA and len(value) in (1, 2, 4, 8):
        return int.from_bytes(bytes(value), "little")
    return 0


def access_path(node: Any, *args: Any) -> Any:
    """Follow dictionary keys and array indexes from ``node``; None if any step fails."""
    current = node
    for step in args:
        kind = _kind(current)
        if kind is _Kind.DICT and isinstance(step, str):
            current = current.get(step)
        elif kind is _Kind.ARRAY and isinstance(step, int) and not isinstance(step, bool):
            if not 0 <= step < len(current):
                return None
            current = current[step]
        else:
            return None
        if current is None:
            return None
    return current


def merge(target: MutableMapping, overrides: Mapping | None) -> None:
    """Copy every entry of ``overrides`` into ``target``, replacing existing keys."""
    if not overrides:
        return
    for key, value in overrides.items():
        target[key] = copy.deepcopy(value)


def values_equal(a: Any, b: Any) -> bool:
    """Compare two property-list values by type and content."""
    kind = _kind(a)
    if kind is not _kind(b):
        return False
    if kind is _Kind.DICT:
        return a.keys() == b.keys() and all(values_equal(a[k], b[k]) for k in a)
    if kind is _Kind.ARRAY:
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    if kind is _Kind.DATA:
        return bytes(a) == bytes(b)
    return a == b