"""
SQL adapter synchronizing a policy model with the rule table.

Every load and mutation goes through ``RetryingConnection.run``; multi-step
calls run in a single transaction which is committed on success and rolled
back on any failure. Table provisioning runs once at construction and is not
retried.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Optional, Sequence, Union

from casbin.model import Model
from casbin.persist.adapter import load_policy_line
from casbin.persist.adapter_filtered import FilteredAdapter
from casbin.persist.adapters import UpdateAdapter
from casbin.persist.batch_adapter import BatchAdapter
from loguru import logger
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from casbin_sql_adapter.config import Settings, settings as default_settings
from casbin_sql_adapter.core.exceptions import SchemaError
from casbin_sql_adapter.database import build_rule_table, create_rule_engine

from . import dialects
from .bulk import DEFAULT_BATCH_SIZE, BulkSync
from .codec import RuleCodec, load_escaped_policy_line
from .filters import Filter, FilterMatcher, load_filtered
from .mutator import IncrementalMutator
from .retry import DEFAULT_ATTEMPTS, DEFAULT_DELAY_SECONDS, RetryingConnection

DEFAULT_TABLE_NAME = "casbin_rule"

LineLoader = Callable[[str, Model], None]


class SQLAdapter(BatchAdapter, UpdateAdapter, FilteredAdapter):
    """casbin adapter keeping policy rules in a single SQL table."""

    def __init__(
        self,
        engine: Union[Engine, str],
        *,
        table_name: str = DEFAULT_TABLE_NAME,
        auto_create_table: bool = True,
        remove_policy_failed: bool = False,
        escape_values: bool = False,
        batch_size: int = DEFAULT_BATCH_SIZE,
        retry_attempts: int = DEFAULT_ATTEMPTS,
        retry_delay: float = DEFAULT_DELAY_SECONDS,
        line_loader: Optional[LineLoader] = None,
    ):
        dialects.object_names(table_name)

        self._owns_engine = isinstance(engine, str)
        if isinstance(engine, str):
            engine = create_rule_engine(Settings(db_url=engine))

        self.engine = engine
        self.table_name = table_name
        self.table = build_rule_table(table_name)
        self.codec = RuleCodec(escape=escape_values)
        self.session = RetryingConnection(engine, attempts=retry_attempts, delay=retry_delay)
        self.bulk = BulkSync(self.table, self.codec, batch_size=batch_size)
        self.mutator = IncrementalMutator(
            self.table,
            self.codec,
            batch_size=batch_size,
            remove_policy_failed=remove_policy_failed,
        )
        if line_loader is None:
            line_loader = load_escaped_policy_line if escape_values else load_policy_line
        self.line_loader = line_loader
        self._filtered = False

        if auto_create_table:
            try:
                self.ensure_table()
            except SchemaError:
                self.close()
                raise

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **overrides: Any) -> "SQLAdapter":
        settings = settings or default_settings
        options = {
            "table_name": settings.casbin_table_name,
            "auto_create_table": settings.casbin_auto_create_table,
            "remove_policy_failed": settings.casbin_remove_policy_failed,
            "escape_values": settings.casbin_escape_values,
            "batch_size": settings.casbin_batch_size,
            "retry_attempts": settings.db_retry_attempts,
            "retry_delay": settings.db_retry_delay_seconds,
        }
        options.update(overrides)
        engine = create_rule_engine(settings)
        try:
            adapter = cls(engine, **options)
        except Exception:
            engine.dispose()
            raise
        adapter._owns_engine = True
        return adapter

    # Schema

    def ensure_table(self) -> None:
        try:
            dialects.ensure_table(self.session.connection, self.table_name)
        except SQLAlchemyError as exc:
            raise SchemaError(f"Could not provision rule table {self.table_name}: {exc}") from exc

    def drop_table(self) -> None:
        try:
            dialects.drop_table(self.session.connection, self.table_name)
        except SQLAlchemyError as exc:
            raise SchemaError(f"Could not drop rule table {self.table_name}: {exc}") from exc

    # Loading

    def _emitter(self, model: Model) -> Callable[[str], None]:
        def emit(line: str) -> None:
            self.line_loader(line, model)

        return emit

    def load_policy(self, model: Model) -> None:
        """Load every rule of the table into the model."""
        emit = self._emitter(model)
        loaded = self.session.run(lambda connection: self.bulk.load_all(connection, emit))
        logger.info(f"Loaded {loaded} policy rules from {self.table_name}")

    def load_filtered_policy(self, model: Model, filter: Any = None) -> None:
        """Load only the rules matching ``filter``; ``None`` loads everything."""
        if filter is None:
            self.load_policy(model)
            self._filtered = False
            return

        matcher = FilterMatcher(Filter.coerce(filter))
        emit = self._emitter(model)
        loaded = self.session.run(
            lambda connection: load_filtered(self.bulk, connection, matcher, emit)
        )
        self._filtered = True
        logger.info(f"Loaded {loaded} filtered policy rules from {self.table_name}")

    def is_filtered(self) -> bool:
        return self._filtered

    # Saving

    def save_policy(self, model: Model) -> None:
        """Replace the table contents with the model's rules."""
        self.session.run(lambda connection: self.bulk.save_all(connection, model))

    def add_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> bool:
        return self.add_policies(sec, ptype, [rule])

    def add_policies(self, sec: str, ptype: str, rules: Iterable[Sequence[str]]) -> bool:
        rules = list(rules)
        if not rules:
            return False
        self.session.run(lambda connection: self.mutator.add_many(connection, ptype, rules))
        return True

    def remove_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> bool:
        """Delete the rule; returns whether any row matched."""
        return 0 < self.session.run(lambda connection: self.mutator.remove(connection, ptype, rule))

    def remove_policies(self, sec: str, ptype: str, rules: Iterable[Sequence[str]]) -> bool:
        rules = list(rules)
        if not rules:
            return False
        return 0 < self.session.run(lambda connection: self.mutator.remove_many(connection, ptype, rules))

    def remove_filtered_policy(self, sec: str, ptype: str, field_index: int, *field_values: str) -> bool:
        return 0 < self.session.run(
            lambda connection: self.mutator.remove_filtered(connection, ptype, field_index, field_values)
        )

    def update_policy(
        self, sec: str, ptype: str, old_rule: Sequence[str], new_rule: Sequence[str]
    ) -> None:
        self.session.run(
            lambda connection: self.mutator.update(connection, ptype, old_rule, new_rule)
        )

    def update_policies(
        self,
        sec: str,
        ptype: str,
        old_rules: Sequence[Sequence[str]],
        new_rules: Sequence[Sequence[str]],
    ) -> None:
        old_rules, new_rules = list(old_rules), list(new_rules)
        self.session.run(
            lambda connection: self.mutator.update_many(connection, ptype, old_rules, new_rules)
        )

    def close(self) -> None:
        self.session.close()
        if self._owns_engine:
            self.engine.dispose()

    def __enter__(self) -> "SQLAdapter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["DEFAULT_TABLE_NAME", "SQLAdapter"]
