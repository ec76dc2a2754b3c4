"""
Dialect-aware provisioning of the rule table.

Each supported dialect is described by a ``DialectProfile``: an optional
existence pre-check, the statements run before and after the ``CREATE
TABLE`` and the statements that drop the table again. Every statement is
safe to run on every startup, so provisioning never depends on whether
another adapter instance got there first.

Templates are rendered with ``str.format`` and receive ``table``,
``sequence`` and ``trigger`` (plus upper-case variants for catalog lookups).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from loguru import logger
from sqlalchemy.engine import Connection

from casbin_sql_adapter.config.settings import IDENTIFIER_PATTERN
from casbin_sql_adapter.core.exceptions import SchemaError

COLUMNS_DDL = (
    "ptype VARCHAR(100) NOT NULL, v0 VARCHAR(100), v1 VARCHAR(100), v2 VARCHAR(100), "
    "v3 VARCHAR(100), v4 VARCHAR(100), v5 VARCHAR(100)"
)


@dataclass(frozen=True)
class DialectProfile:
    name: str
    create_sql: str
    exists_sql: Optional[str] = None
    pre_create: Tuple[str, ...] = ()
    post_create: Tuple[str, ...] = ()
    drop_sql: Tuple[str, ...] = ()


_MYSQL = DialectProfile(
    name="mysql",
    # IF NOT EXISTS with auto_increment is not reliably idempotent on every driver
    exists_sql="SHOW TABLES LIKE '{like}'",
    create_sql=(
        "CREATE TABLE IF NOT EXISTS {table}(id int NOT NULL PRIMARY KEY auto_increment, "
        + COLUMNS_DDL + ")"
    ),
    drop_sql=("DROP TABLE IF EXISTS {table}",),
)

_POSTGRESQL = DialectProfile(
    name="postgresql",
    pre_create=("CREATE SEQUENCE IF NOT EXISTS {sequence} START 1",),
    create_sql=(
        "CREATE TABLE IF NOT EXISTS {table}(id int NOT NULL PRIMARY KEY "
        "default nextval('{sequence}'::regclass), " + COLUMNS_DDL + ")"
    ),
    drop_sql=("DROP TABLE IF EXISTS {table}", "DROP SEQUENCE IF EXISTS {sequence}"),
)

_MSSQL = DialectProfile(
    name="mssql",
    create_sql=(
        "IF NOT EXISTS (SELECT * FROM sysobjects WHERE name='{table}' and xtype='U') "
        "CREATE TABLE {table}(id int NOT NULL primary key identity(1, 1), " + COLUMNS_DDL + ")"
    ),
    drop_sql=(
        "IF EXISTS (SELECT * FROM sysobjects WHERE name='{table}' and xtype='U') "
        "DROP TABLE {table}",
    ),
)

# ORA-00955: name is already used by an existing object
_ORACLE = DialectProfile(
    name="oracle",
    create_sql=(
        "declare begin execute immediate 'CREATE TABLE {TABLE}(id NUMBER(10, 0) not NULL primary key, "
        + COLUMNS_DDL + ")'; "
        "exception when others then if SQLCODE = -955 then null; else raise; end if; end;"
    ),
    post_create=(
        "declare V_NUM number; BEGIN V_NUM := 0; "
        "select count(0) into V_NUM from user_sequences where sequence_name = '{SEQUENCE}'; "
        "if V_NUM > 0 then null; "
        "else execute immediate 'CREATE SEQUENCE {sequence} increment by 1 start with 1 nomaxvalue nocycle nocache'; "
        "end if; END;",
        "declare V_NUM number; BEGIN V_NUM := 0; "
        "select count(0) into V_NUM from user_triggers where trigger_name = '{TRIGGER}'; "
        "if V_NUM > 0 then null; "
        "else execute immediate 'create trigger {trigger} before insert on {TABLE} for each row "
        "when (new.id is null) begin select {sequence}.nextval into :new.id from dual; end;'; "
        "end if; END;",
    ),
    # ORA-00942 table missing, ORA-02289 sequence missing; the trigger goes with the table
    drop_sql=(
        "BEGIN execute immediate 'DROP TABLE {TABLE}'; "
        "exception when others then if SQLCODE = -942 then null; else raise; end if; END;",
        "BEGIN execute immediate 'DROP SEQUENCE {sequence}'; "
        "exception when others then if SQLCODE = -2289 then null; else raise; end if; END;",
    ),
)

_SQLITE = DialectProfile(
    name="sqlite",
    create_sql="CREATE TABLE IF NOT EXISTS {table}(id INTEGER PRIMARY KEY AUTOINCREMENT, " + COLUMNS_DDL + ")",
    drop_sql=("DROP TABLE IF EXISTS {table}",),
)

DIALECTS: Dict[str, DialectProfile] = {
    "mysql": _MYSQL,
    "mariadb": _MYSQL,
    "postgresql": _POSTGRESQL,
    "mssql": _MSSQL,
    "oracle": _ORACLE,
    "sqlite": _SQLITE,
}


def object_names(table_name: str) -> Dict[str, str]:
    if not IDENTIFIER_PATTERN.match(table_name):
        raise SchemaError(f"Invalid rule table name: {table_name!r}")
    names = {
        "table": table_name,
        "sequence": f"{table_name}_seq",
        "trigger": f"{table_name}_id_autoincrement",
    }
    names.update({key.upper(): value.upper() for key, value in list(names.items())})
    # "_" is a LIKE wildcard
    names["like"] = table_name.replace("_", r"\_")
    return names


def dialect_for(connection: Connection) -> DialectProfile:
    name = connection.dialect.name
    try:
        return DIALECTS[name]
    except KeyError:
        raise SchemaError(f"Unsupported database dialect: {name}") from None


def render(template: str, table_name: str) -> str:
    return template.format(**object_names(table_name))


def create_statements(profile: DialectProfile, table_name: str) -> Tuple[str, ...]:
    templates = profile.pre_create + (profile.create_sql,) + profile.post_create
    return tuple(render(template, table_name) for template in templates)


def ensure_table(connection: Connection, table_name: str) -> bool:
    """Create the rule table unless it exists. Returns whether DDL was issued."""
    profile = dialect_for(connection)
    with connection.begin():
        if profile.exists_sql is not None:
            existing = connection.exec_driver_sql(render(profile.exists_sql, table_name)).first()
            if existing is not None:
                logger.debug(f"Rule table {table_name} already exists")
                return False

        for statement in create_statements(profile, table_name):
            connection.exec_driver_sql(statement)

    logger.info(f"Ensured rule table {table_name} ({profile.name})")
    return True


def drop_table(connection: Connection, table_name: str) -> None:
    profile = dialect_for(connection)
    with connection.begin():
        for template in profile.drop_sql:
            connection.exec_driver_sql(render(template, table_name))
    logger.info(f"Dropped rule table {table_name} ({profile.name})")


def recreate_table(connection: Connection, table_name: str) -> None:
    drop_table(connection, table_name)
    ensure_table(connection, table_name)


__all__ = [
    "DIALECTS",
    "DialectProfile",
    "create_statements",
    "dialect_for",
    "drop_table",
    "ensure_table",
    "object_names",
    "recreate_table",
]
