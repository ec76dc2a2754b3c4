"""
Configuration module for the casbin SQL adapter.
"""

from casbin_sql_adapter.config.settings import Settings, settings

__all__ = [
    "Settings",
    "settings",
]
