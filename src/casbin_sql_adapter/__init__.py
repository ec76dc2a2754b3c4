"""
casbin SQL adapter - persists casbin-style policy rules in a relational table.

Supports MySQL/MariaDB, PostgreSQL, SQL Server, Oracle and SQLite.
"""

from casbin_sql_adapter.__version__ import SUPPORTED_DIALECTS, __version__, __version_info__, get_version
from casbin_sql_adapter.core.exceptions import (
    AdapterError,
    InvalidFilterError,
    RemovePolicyError,
    SchemaError,
    StorageError,
)
from casbin_sql_adapter.persist import Filter, SQLAdapter

Adapter = SQLAdapter

__all__ = [
    "SUPPORTED_DIALECTS",
    "__version__",
    "__version_info__",
    "get_version",
    "Adapter",
    "AdapterError",
    "Filter",
    "InvalidFilterError",
    "RemovePolicyError",
    "SQLAdapter",
    "SchemaError",
    "StorageError",
]
