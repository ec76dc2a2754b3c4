"""Rule table definition and engine construction."""

from .models import RULE_COLUMNS, build_rule_table
from .session import create_rule_engine

__all__ = [
    "RULE_COLUMNS",
    "build_rule_table",
    "create_rule_engine",
]
