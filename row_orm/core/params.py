"""SQL parameter binding and normalization.

Binding checks every value against the closed set of supported kinds and
tags it. Normalization converts `:name` parameter syntax to the
driver-specific format, skipping string literals and PostgreSQL
`::typecast` syntax.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from functools import lru_cache
from typing import Any

from row_orm.core.enums import ParamKind, ScalarKind
from row_orm.core.exceptions import UnsupportedParameterType

_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1
_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1

# Matches :name but not ::typecast and not inside words
# Negative lookbehind for : (handles ::), \w (handles mid-word colons)
_PARAM_PATTERN = re.compile(r"(?<![:\w]):([a-zA-Z_]\w*)")

# Matches single-quoted string literals (with escaped quotes handled)
_STRING_LITERAL_PATTERN = re.compile(r"'(?:[^'\\]|\\.)*'")

# Declared column kind -> inferred value kinds it accepts
_COMPATIBLE: dict[ParamKind, frozenset[ParamKind]] = {
    ParamKind.TEXT: frozenset({ParamKind.TEXT}),
    ParamKind.INTEGER: frozenset({ParamKind.INTEGER}),
    ParamKind.LONG: frozenset({ParamKind.INTEGER, ParamKind.LONG}),
    ParamKind.DECIMAL: frozenset({ParamKind.DECIMAL, ParamKind.INTEGER, ParamKind.LONG}),
    ParamKind.TIMESTAMP: frozenset({ParamKind.TIMESTAMP}),
    ParamKind.BLOB: frozenset({ParamKind.BLOB}),
    ParamKind.BOOLEAN: frozenset({ParamKind.BOOLEAN}),
}


@dataclass(frozen=True)
class BoundParameter:
    """A statement parameter tagged with its scalar kind."""

    name: str
    kind: ParamKind
    value: Any


def infer_kind(name: str, value: Any) -> ParamKind:
    """Return the ParamKind of *value* or raise UnsupportedParameterType."""
    if value is None:
        return ParamKind.NULL
    # bool is an int subclass, so it must be checked first
    if isinstance(value, bool):
        return ParamKind.BOOLEAN
    if isinstance(value, int):
        if _INT32_MIN <= value <= _INT32_MAX:
            return ParamKind.INTEGER
        if _INT64_MIN <= value <= _INT64_MAX:
            return ParamKind.LONG
        raise UnsupportedParameterType(name, value)
    if isinstance(value, str):
        return ParamKind.TEXT
    if isinstance(value, Decimal):
        return ParamKind.DECIMAL
    if isinstance(value, datetime):
        return ParamKind.TIMESTAMP
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ParamKind.BLOB
    raise UnsupportedParameterType(name, value)


def bind(name: str, value: Any, kind: ScalarKind | None = None) -> BoundParameter:
    """Bind *value* under *name*, optionally checked against a column kind.

    Raises:
        UnsupportedParameterType: If the value is outside the supported set
            or does not fit the declared column kind.
    """
    inferred = infer_kind(name, value)
    if inferred is ParamKind.NULL:
        return BoundParameter(name, ParamKind.NULL, None)

    if kind is not None:
        declared = ParamKind(kind.value)
        if inferred not in _COMPATIBLE[declared]:
            raise UnsupportedParameterType(name, value)
        if declared is ParamKind.DECIMAL and not isinstance(value, Decimal):
            value = Decimal(value)
        inferred = declared

    if isinstance(value, (bytearray, memoryview)):
        value = bytes(value)
    return BoundParameter(name, inferred, value)


def coerce_params(
    params: dict[str, Any] | tuple[Any, ...] | list[Any] | Any,
) -> dict[str, Any] | tuple[Any, ...] | None:
    """Normalize *params* to a dict, tuple, or None.

    * ``None`` / ``dict`` → returned as-is (named parameter binding).
    * ``tuple`` / ``list`` → converted to ``tuple`` (positional binding).
    * Any other scalar → wrapped in a single-element tuple.
    """
    if params is None or isinstance(params, dict):
        return params
    if isinstance(params, (tuple, list)):
        return tuple(params)
    return (params,)


def bind_params(
    params: dict[str, Any] | tuple[Any, ...] | list[Any] | Any,
) -> dict[str, Any] | tuple[Any, ...] | None:
    """Coerce caller-supplied parameters and validate every value.

    Positional parameters are named by their 1-based index in errors.
    """
    coerced = coerce_params(params)
    if coerced is None:
        return None
    if isinstance(coerced, dict):
        return {name: bind(name, value).value for name, value in coerced.items()}
    return tuple(bind(str(index), value).value for index, value in enumerate(coerced, 1))


def normalize_params(sql: str, paramstyle: str) -> str:
    """Convert :name parameters to the target param style.

    Args:
        sql: SQL string with :name parameters.
        paramstyle: Target style - 'named' (no conversion) or 'pyformat' (%(name)s).

    Returns:
        SQL with parameters converted to the target style.
    """
    if paramstyle == "named":
        return sql
    return _convert_to_pyformat(sql)


@lru_cache(maxsize=256)
def _convert_to_pyformat(sql: str) -> str:
    """Convert :name params to %(name)s, preserving string literals."""
    parts: list[str] = []
    last_end = 0

    for match in _STRING_LITERAL_PATTERN.finditer(sql):
        start, end = match.span()
        if start > last_end:
            parts.append(_PARAM_PATTERN.sub(r"%(\1)s", sql[last_end:start]))
        parts.append(match.group())
        last_end = end

    if last_end < len(sql):
        parts.append(_PARAM_PATTERN.sub(r"%(\1)s", sql[last_end:]))

    return "".join(parts)
