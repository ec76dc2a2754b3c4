"""
Incremental rule mutations.

Removal comes in two flavours that deliberately differ:

* ``remove`` matches a rule exactly. Supplied values must be equal at their
  column and every column past the rule's length must be NULL, so removing a
  3-value rule never touches a 5-value rule sharing the same prefix.
* ``remove_filtered`` matches from ``field_index`` onwards, treats ``""`` as
  "any value" and leaves the remaining columns unconstrained.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from loguru import logger
from sqlalchemy import Table, and_, delete
from sqlalchemy.engine import Connection
from sqlalchemy.sql.elements import ColumnElement

from casbin_sql_adapter.core.exceptions import RemovePolicyError
from casbin_sql_adapter.database.models import RULE_COLUMNS

from .bulk import DEFAULT_BATCH_SIZE, BatchWriter
from .codec import MAX_FIELDS, RuleCodec


class IncrementalMutator:
    def __init__(
        self,
        table: Table,
        codec: RuleCodec,
        batch_size: int = DEFAULT_BATCH_SIZE,
        remove_policy_failed: bool = False,
    ):
        self.table = table
        self.codec = codec
        self.batch_size = batch_size
        self.remove_policy_failed = remove_policy_failed

    def rule_condition(self, ptype: str, rule: Sequence[str]) -> ColumnElement[bool]:
        clauses = [self.table.c.ptype == ptype]
        for index, name in enumerate(RULE_COLUMNS):
            column = self.table.c[name]
            if index < len(rule):
                clauses.append(column == rule[index])
            else:
                clauses.append(column.is_(None))
        return and_(*clauses)

    def filtered_condition(
        self, ptype: str, field_index: int, field_values: Sequence[str]
    ) -> ColumnElement[bool]:
        if field_index < 0:
            raise ValueError(f"field_index must not be negative, got {field_index}")
        clauses = [self.table.c.ptype == ptype]
        for offset, value in enumerate(field_values):
            if value == "":
                continue
            position = field_index + offset
            if position >= MAX_FIELDS:
                raise ValueError(f"Filter value {value!r} falls past column v{MAX_FIELDS - 1}")
            clauses.append(self.table.c[RULE_COLUMNS[position]] == value)
        return and_(*clauses)

    def _check_removed(self, operation: str, removed: int) -> None:
        if removed < 1 and self.remove_policy_failed:
            raise RemovePolicyError(operation, expected=1, actual=removed)

    def _insert_rules(self, connection: Connection, ptype: str, rules: Iterable[Sequence[str]]) -> int:
        writer = BatchWriter(connection, self.table, self.batch_size)
        for rule in rules:
            writer.add(self.codec.encode(ptype, rule))
        writer.flush()
        return writer.written

    def _delete_rule(self, connection: Connection, ptype: str, rule: Sequence[str]) -> int:
        result = connection.execute(delete(self.table).where(self.rule_condition(ptype, rule)))
        self._check_removed("Remove policy", result.rowcount)
        return result.rowcount

    def add(self, connection: Connection, ptype: str, rule: Sequence[str]) -> int:
        return self.add_many(connection, ptype, [rule])

    def add_many(self, connection: Connection, ptype: str, rules: Iterable[Sequence[str]]) -> int:
        rules = list(rules)
        if not rules:
            return 0
        with connection.begin():
            added = self._insert_rules(connection, ptype, rules)
        logger.debug(f"Added {added} {ptype} rules")
        return added

    def remove(self, connection: Connection, ptype: str, rule: Sequence[str]) -> int:
        if not rule:
            return 0
        with connection.begin():
            removed = self._delete_rule(connection, ptype, rule)
        logger.debug(f"Removed {removed} rows for {ptype} rule {list(rule)}")
        return removed

    def remove_many(self, connection: Connection, ptype: str, rules: Iterable[Sequence[str]]) -> int:
        rules = [rule for rule in rules if rule]
        if not rules:
            return 0
        with connection.begin():
            removed = sum(self._delete_rule(connection, ptype, rule) for rule in rules)
        logger.debug(f"Removed {removed} rows for {len(rules)} {ptype} rules")
        return removed

    def remove_filtered(
        self, connection: Connection, ptype: str, field_index: int, field_values: Sequence[str]
    ) -> int:
        if not field_values:
            return 0
        condition = self.filtered_condition(ptype, field_index, field_values)
        with connection.begin():
            removed = connection.execute(delete(self.table).where(condition)).rowcount
            self._check_removed("Remove filtered policy", removed)
        logger.debug(f"Removed {removed} {ptype} rows matching {list(field_values)} from v{field_index}")
        return removed

    def update(
        self, connection: Connection, ptype: str, old_rule: Sequence[str], new_rule: Sequence[str]
    ) -> None:
        if not old_rule or not new_rule:
            return
        with connection.begin():
            self._delete_rule(connection, ptype, old_rule)
            self._insert_rules(connection, ptype, [new_rule])

    def update_many(
        self,
        connection: Connection,
        ptype: str,
        old_rules: Sequence[Sequence[str]],
        new_rules: Sequence[Sequence[str]],
    ) -> None:
        if len(old_rules) != len(new_rules):
            raise ValueError(
                f"old_rules and new_rules differ in length ({len(old_rules)} != {len(new_rules)})"
            )
        pairs = [(old, new) for old, new in zip(old_rules, new_rules) if old and new]
        if not pairs:
            return
        with connection.begin():
            for old_rule, new_rule in pairs:
                self._delete_rule(connection, ptype, old_rule)
            self._insert_rules(connection, ptype, [new for _, new in pairs])


__all__ = ["IncrementalMutator"]
