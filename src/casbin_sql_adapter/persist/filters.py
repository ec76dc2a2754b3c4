"""
Filtered loading.

A ``Filter`` holds one positional value list per rule family. Position ``i``
of the list constrains column ``v{i}``; an empty string leaves the position
unconstrained. Matching happens row by row while scanning the table, the
filter is never pushed down into SQL.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from loguru import logger
from sqlalchemy.engine import Connection

from casbin_sql_adapter.core.exceptions import InvalidFilterError

from .bulk import BulkSync, LineSink
from .codec import StoredRow


@dataclass
class Filter:
    p: List[str] = field(default_factory=list)
    g: List[str] = field(default_factory=list)

    @classmethod
    def coerce(cls, value: Any) -> "Filter":
        """Accept a ``Filter``, a ``{"p": [...], "g": [...]}`` mapping or any object with ``p``/``g``."""
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            unknown = set(value) - {"p", "g"}
            if unknown:
                raise InvalidFilterError(f"Unknown filter keys: {sorted(unknown)}")
            return cls(p=_values(value.get("p"), "p"), g=_values(value.get("g"), "g"))
        if hasattr(value, "p") and hasattr(value, "g"):
            return cls(p=_values(value.p, "p"), g=_values(value.g, "g"))
        raise InvalidFilterError(f"Invalid filter type: {type(value).__name__}")

    def for_ptype(self, ptype: str) -> List[str]:
        if ptype.startswith("p"):
            return self.p
        if ptype.startswith("g"):
            return self.g
        return []


def _values(values: Any, name: str) -> List[str]:
    if values is None:
        return []
    if not isinstance(values, (list, tuple)) or not all(isinstance(item, str) for item in values):
        raise InvalidFilterError(f"Filter field {name!r} must be a sequence of strings")
    return list(values)


class FilterMatcher:
    def __init__(self, flt: Filter):
        self.filter = flt

    def skip(self, row: StoredRow) -> bool:
        for index, expected in enumerate(self.filter.for_ptype(row.ptype)):
            if expected and expected != row.value(index):
                return True
        return False


def load_filtered(
    sync: BulkSync, connection: Connection, matcher: Optional[FilterMatcher], emit: LineSink
) -> int:
    """Feed every row the matcher keeps to ``emit``; without a matcher this is a full load."""
    if matcher is None:
        return sync.load_all(connection, emit)

    loaded = skipped = 0
    with connection.begin():
        for row in sync.select_rows(connection):
            if matcher.skip(row):
                skipped += 1
                continue
            emit(sync.codec.decode(row))
            loaded += 1
    logger.debug(f"Filtered load kept {loaded} rules and skipped {skipped}")
    return loaded


__all__ = ["Filter", "FilterMatcher", "load_filtered"]
