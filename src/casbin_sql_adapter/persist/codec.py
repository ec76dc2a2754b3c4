"""
Conversion between policy rules and rule-table rows.

A rule is a ptype plus up to six positional values. A row always carries all
six value columns, with ``None`` marking the columns the rule does not use.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from casbin.model import Model
from loguru import logger

from casbin_sql_adapter.database.models import RULE_COLUMNS

MAX_FIELDS = len(RULE_COLUMNS)
QUOTE = '"'
DELIMITER = ","


@dataclass(frozen=True)
class StoredRow:
    """Relational projection of a single policy rule."""

    ptype: str
    values: Tuple[Optional[str], ...] = (None,) * MAX_FIELDS
    id: Optional[int] = None

    def value(self, index: int) -> Optional[str]:
        if 0 <= index < MAX_FIELDS:
            return self.values[index]
        return None


def escape_value(value: str) -> str:
    if len(value) >= 2 and value.startswith(QUOTE) and value.endswith(QUOTE):
        return value
    return QUOTE + value.replace(QUOTE, QUOTE * 2) + QUOTE


def split_line(line: str) -> List[str]:
    """Tokenize a policy line, honouring double-quoted values."""
    for tokens in csv.reader([line], delimiter=DELIMITER, quotechar=QUOTE, skipinitialspace=True):
        return tokens
    return []


def load_escaped_policy_line(line: str, model: Model) -> None:
    """
    Fold a line written with escaping enabled into a casbin model.

    ``casbin.persist.load_policy_line`` splits on every comma, so quoted values
    holding the delimiter are tokenized here and handed to ``Model.add_policy``.
    """
    if not line or line.startswith("#"):
        return

    tokens = split_line(line)
    if not tokens:
        return

    key = tokens[0]
    sec = key[:1]
    if key not in model.model.get(sec, {}):
        logger.debug(f"Ignoring policy line for unknown ptype {key!r}")
        return
    model.add_policy(sec, key, tokens[1:])


class RuleCodec:
    """Encodes rules into rows and rows into policy lines."""

    def __init__(self, escape: bool = False):
        self.escape = escape

    def encode(self, ptype: str, values: Sequence[str]) -> StoredRow:
        values = list(values)
        if len(values) > MAX_FIELDS:
            logger.debug(f"Truncating {ptype} rule with {len(values)} values to {MAX_FIELDS}")
            values = values[:MAX_FIELDS]
        padded = tuple(values) + (None,) * (MAX_FIELDS - len(values))
        return StoredRow(ptype=ptype, values=padded)

    def decode(self, row: StoredRow) -> str:
        fields = [row.ptype]
        for value in row.values:
            if value is None:
                continue
            if self.escape:
                fields.append(escape_value(value))
            elif value != "":
                fields.append(value)
        return ", ".join(fields)

    @staticmethod
    def row_params(row: StoredRow) -> Dict[str, Any]:
        params: Dict[str, Any] = {"ptype": row.ptype}
        params.update(zip(RULE_COLUMNS, row.values))
        return params

    @staticmethod
    def row_from_mapping(mapping: Mapping[str, Any]) -> StoredRow:
        return StoredRow(
            ptype=mapping["ptype"] or "",
            values=tuple(mapping.get(column) for column in RULE_COLUMNS),
            id=mapping.get("id"),
        )


__all__ = [
    "MAX_FIELDS",
    "RuleCodec",
    "StoredRow",
    "escape_value",
    "load_escaped_policy_line",
    "split_line",
]
