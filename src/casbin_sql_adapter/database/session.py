"""Database engine construction."""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from casbin_sql_adapter.config import Settings, settings as default_settings


def engine_kwargs(settings: Settings) -> Dict[str, Any]:
    """Keyword arguments for ``create_engine`` derived from settings."""
    url = make_url(settings.database_dsn)
    kwargs: Dict[str, Any] = {
        "echo": settings.db_echo,
        "pool_pre_ping": True,
    }

    if url.get_backend_name() == "sqlite":
        kwargs.setdefault("connect_args", {})
        kwargs["connect_args"].setdefault("timeout", settings.sqlite_busy_timeout_seconds)
        if url.database in (None, "", ":memory:"):
            # one shared in-memory database for every checkout
            kwargs["connect_args"]["check_same_thread"] = False
            kwargs["poolclass"] = StaticPool

    if url.get_backend_name() == "postgresql" and settings.db_schema:
        kwargs.setdefault("connect_args", {})
        existing_options = kwargs["connect_args"].get("options", "")
        search_option = f"-csearch_path={settings.db_schema}"
        if search_option not in existing_options:
            if existing_options:
                kwargs["connect_args"]["options"] = f"{existing_options} {search_option}"
            else:
                kwargs["connect_args"]["options"] = search_option

    return kwargs


def create_rule_engine(settings: Optional[Settings] = None) -> Engine:
    """Create the engine backing the rule table."""
    settings = settings or default_settings
    engine = create_engine(settings.database_dsn, **engine_kwargs(settings))

    if engine.dialect.name == "sqlite":
        busy_timeout_ms = max(settings.sqlite_busy_timeout_seconds, 1) * 1000

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record) -> None:  # pragma: no cover - connection setup
            cursor = dbapi_connection.cursor()
            cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms}")
            cursor.close()

    return engine


__all__ = ["create_rule_engine", "engine_kwargs"]
