"""Policy rule table definition."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table

RULE_COLUMNS = ("v0", "v1", "v2", "v3", "v4", "v5")
VALUE_LENGTH = 100


def build_rule_table(table_name: str, metadata: Optional[MetaData] = None) -> Table:
    """Core table matching the DDL issued by the dialect provisioning.

    The table is only used to render statements; provisioning itself goes
    through the per-dialect DDL, never ``metadata.create_all``.
    The name is rendered unquoted, as the DDL writes it.
    """
    metadata = metadata if metadata is not None else MetaData()
    return Table(
        table_name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("ptype", String(VALUE_LENGTH), nullable=False),
        *(Column(name, String(VALUE_LENGTH), nullable=True) for name in RULE_COLUMNS),
        quote=False,
    )


__all__ = ["RULE_COLUMNS", "VALUE_LENGTH", "build_rule_table"]
