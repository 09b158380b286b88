"""Named-field enumeration for compound values written as JSON objects."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from typing import Any
from typing import Protocol
from typing import TypeAlias
from typing import runtime_checkable

FieldPairs: TypeAlias = Iterable[tuple[str, Any]]


@runtime_checkable
class JSONFields(Protocol):
    """
    Capability of values that know how to present themselves as an object.

    Implementers yield (name, value) pairs in output order. Pairs whose value
    is None are dropped by the writer, so there is no need to filter them.
    """

    def __json_fields__(self) -> FieldPairs: ...


def lower_initial(name: str) -> str:
    """Lower-cases the first character of a field name if it is upper-case."""
    if not name or not name[0].isupper():
        return name
    return name[0].lower() + name[1:]


def iter_fields(value: Any) -> FieldPairs | None:
    """
    Returns the named fields of a compound value, or None.

    Objects implementing JSONFields take precedence; dataclass instances are
    enumerated in declaration order. Classes themselves are never compound
    values.
    """
    if isinstance(value, type):
        return None
    if isinstance(value, JSONFields):
        return value.__json_fields__()
    if dataclasses.is_dataclass(value):
        return [
            (field.name, getattr(value, field.name, None))
            for field in dataclasses.fields(value)
        ]
    return None
