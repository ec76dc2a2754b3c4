"""Rule-table synchronization engine."""

from .adapter import DEFAULT_TABLE_NAME, SQLAdapter
from .bulk import BatchWriter, BulkSync
from .codec import RuleCodec, StoredRow, load_escaped_policy_line
from .dialects import DIALECTS, DialectProfile, drop_table, ensure_table, recreate_table
from .filters import Filter, FilterMatcher
from .mutator import IncrementalMutator
from .retry import RetryingConnection

__all__ = [
    "BatchWriter",
    "BulkSync",
    "DEFAULT_TABLE_NAME",
    "DIALECTS",
    "DialectProfile",
    "Filter",
    "FilterMatcher",
    "IncrementalMutator",
    "RetryingConnection",
    "RuleCodec",
    "SQLAdapter",
    "StoredRow",
    "drop_table",
    "ensure_table",
    "load_escaped_policy_line",
    "recreate_table",
]
