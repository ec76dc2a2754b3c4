"""Full-table load and save of the rule table."""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, List, Tuple

from casbin.model import Model
from loguru import logger
from sqlalchemy import Table, delete, select
from sqlalchemy.engine import Connection

from casbin_sql_adapter.database.models import RULE_COLUMNS

from .codec import RuleCodec, StoredRow

DEFAULT_BATCH_SIZE = 1000
SECTIONS = ("p", "g")

LineSink = Callable[[str], None]


def iter_rules(model: Model) -> Iterator[Tuple[str, List[str]]]:
    """Yield ``(ptype, rule)`` for every rule, section "p" first then "g"."""
    for sec in SECTIONS:
        for ptype, assertion in model.model.get(sec, {}).items():
            for rule in assertion.policy:
                yield ptype, rule


class BatchWriter:
    """Buffers insert parameters and flushes them every ``batch_size`` rows."""

    def __init__(self, connection: Connection, table: Table, batch_size: int = DEFAULT_BATCH_SIZE):
        self.connection = connection
        self.table = table
        self.batch_size = batch_size
        self.pending: List[Dict[str, Any]] = []
        self.written = 0
        self.flushes = 0

    def add(self, row: StoredRow) -> None:
        self.pending.append(RuleCodec.row_params(row))
        if len(self.pending) >= self.batch_size:
            self.flush()

    def flush(self) -> None:
        if not self.pending:
            return
        self.connection.execute(self.table.insert(), self.pending)
        self.written += len(self.pending)
        self.flushes += 1
        self.pending = []


class BulkSync:
    def __init__(self, table: Table, codec: RuleCodec, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.table = table
        self.codec = codec
        self.batch_size = batch_size

    def writer(self, connection: Connection) -> BatchWriter:
        return BatchWriter(connection, self.table, self.batch_size)

    def select_rows(self, connection: Connection) -> Iterator[StoredRow]:
        """Stream every row; the surrogate id is not projected."""
        stmt = select(self.table.c.ptype, *(self.table.c[name] for name in RULE_COLUMNS))
        for record in connection.execute(stmt):
            yield self.codec.row_from_mapping(record._mapping)

    def load_all(self, connection: Connection, emit: LineSink) -> int:
        loaded = 0
        with connection.begin():
            for row in self.select_rows(connection):
                emit(self.codec.decode(row))
                loaded += 1
        logger.debug(f"Loaded {loaded} rules from {self.table.name}")
        return loaded

    def save_all(self, connection: Connection, model: Model) -> int:
        """Replace the table contents with every "p" and "g" rule of the model."""
        with connection.begin():
            connection.execute(delete(self.table))
            writer = self.writer(connection)
            for ptype, rule in iter_rules(model):
                writer.add(self.codec.encode(ptype, rule))
            writer.flush()
        logger.info(f"Saved {writer.written} rules to {self.table.name} in {writer.flushes} batches")
        return writer.written


__all__ = ["BatchWriter", "BulkSync", "DEFAULT_BATCH_SIZE", "LineSink", "iter_rules"]
