"""
Tests for dialect-aware rule table provisioning
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import delete, select
from sqlalchemy.dialects import mssql, mysql, oracle, postgresql, sqlite

from casbin_sql_adapter import SUPPORTED_DIALECTS, get_version
from casbin_sql_adapter.config import Settings
from casbin_sql_adapter.core.exceptions import SchemaError
from casbin_sql_adapter.database import build_rule_table, create_rule_engine
from casbin_sql_adapter.persist import SQLAdapter
from casbin_sql_adapter.persist import adapter as adapter_module
from casbin_sql_adapter.persist.dialects import (
    DIALECTS,
    create_statements,
    dialect_for,
    drop_table,
    ensure_table,
    object_names,
    recreate_table,
)

from .helpers import stored_rows

SQL_DIALECTS = {
    "mysql": mysql.dialect(),
    "mariadb": mysql.dialect(),
    "postgresql": postgresql.dialect(),
    "mssql": mssql.dialect(),
    "oracle": oracle.dialect(),
    "sqlite": sqlite.dialect(),
}


def fake_connection(dialect_name, existing=None):
    connection = MagicMock()
    connection.dialect.name = dialect_name
    connection.exec_driver_sql.return_value.first.return_value = existing
    return connection


def executed_sql(connection):
    return [call.args[0] for call in connection.exec_driver_sql.call_args_list]


class TestRendering:
    def test_every_supported_dialect_renders(self):
        for name, profile in DIALECTS.items():
            statements = create_statements(profile, "casbin_rule")
            assert statements, name
            assert all("{" not in statement for statement in statements)

    def test_supported_dialects_match_profiles(self):
        assert sorted(SUPPORTED_DIALECTS) == sorted(DIALECTS)
        assert get_version() == "0.1.0"

    def test_custom_table_name_is_used_everywhere(self):
        statements = create_statements(DIALECTS["postgresql"], "acl_rules")

        assert statements == (
            "CREATE SEQUENCE IF NOT EXISTS acl_rules_seq START 1",
            "CREATE TABLE IF NOT EXISTS acl_rules(id int NOT NULL PRIMARY KEY "
            "default nextval('acl_rules_seq'::regclass), ptype VARCHAR(100) NOT NULL, "
            "v0 VARCHAR(100), v1 VARCHAR(100), v2 VARCHAR(100), v3 VARCHAR(100), "
            "v4 VARCHAR(100), v5 VARCHAR(100))",
        )

    def test_oracle_creates_guarded_sequence_and_trigger(self):
        table_sql, sequence_sql, trigger_sql = create_statements(DIALECTS["oracle"], "casbin_rule")

        assert "CREATE TABLE CASBIN_RULE" in table_sql
        assert "SQLCODE = -955" in table_sql
        assert "user_sequences where sequence_name = 'CASBIN_RULE_SEQ'" in sequence_sql
        assert "user_triggers where trigger_name = 'CASBIN_RULE_ID_AUTOINCREMENT'" in trigger_sql
        assert "when (new.id is null)" in trigger_sql

    def test_mssql_uses_identity_guarded_by_catalog(self):
        (statement,) = create_statements(DIALECTS["mssql"], "casbin_rule")

        assert statement.startswith("IF NOT EXISTS (SELECT * FROM sysobjects WHERE name='casbin_rule'")
        assert "identity(1, 1)" in statement

    def test_invalid_table_name_is_rejected(self):
        with pytest.raises(SchemaError):
            object_names("casbin_rule; DROP TABLE users")

    def test_mixed_case_table_name_is_rejected(self):
        with pytest.raises(SchemaError):
            object_names("CasbinRule")

    @pytest.mark.parametrize("name", sorted(DIALECTS))
    def test_ddl_and_statements_name_the_same_table(self, name):
        table = build_rule_table("acl_rules")
        compiled = [
            str(statement.compile(dialect=SQL_DIALECTS[name]))
            for statement in (delete(table), select(table.c.ptype), table.insert())
        ]
        ddl = create_statements(DIALECTS[name], "acl_rules")

        for statement in compiled:
            assert "acl_rules" in statement
            assert not any(quoted in statement for quoted in ('"acl_rules"', "`acl_rules`", "[acl_rules]"))
        assert any("CREATE TABLE" in sql and "acl_rules" in sql.lower() for sql in ddl)

    def test_like_pattern_escapes_underscores(self):
        assert object_names("casbin_rule")["like"] == r"casbin\_rule"

    def test_unknown_dialect_is_rejected(self):
        with pytest.raises(SchemaError, match="Unsupported database dialect"):
            dialect_for(fake_connection("firebird"))


class TestMySQLPreCheck:
    def test_existing_table_skips_create(self):
        connection = fake_connection("mysql", existing=("casbin_rule",))

        created = ensure_table(connection, "casbin_rule")

        assert created is False
        assert executed_sql(connection) == [r"SHOW TABLES LIKE 'casbin\_rule'"]

    def test_missing_table_is_created(self):
        connection = fake_connection("mysql", existing=None)

        created = ensure_table(connection, "casbin_rule")

        assert created is True
        sql = executed_sql(connection)
        assert sql[0] == r"SHOW TABLES LIKE 'casbin\_rule'"
        assert sql[1].startswith("CREATE TABLE IF NOT EXISTS casbin_rule(id int NOT NULL PRIMARY KEY auto_increment")


class TestSQLiteProvisioning:
    def test_ensure_table_twice_keeps_rows(self, adapter):
        adapter.add_policy("p", "p", ["alice", "data1", "read"])

        ensure_table(adapter.session.connection, adapter.table_name)
        ensure_table(adapter.session.connection, adapter.table_name)

        assert stored_rows(adapter) == [("p", "alice", "data1", "read", None, None, None)]

    def test_second_adapter_on_same_table_does_not_fail(self, engine, adapter):
        adapter.add_policy("p", "p", ["alice", "data1", "read"])

        second = SQLAdapter(engine, retry_delay=0)

        assert stored_rows(second) == [("p", "alice", "data1", "read", None, None, None)]
        second.close()

    def test_recreate_clears_table(self, adapter):
        adapter.add_policy("p", "p", ["alice", "data1", "read"])

        recreate_table(adapter.session.connection, adapter.table_name)

        assert stored_rows(adapter) == []

    def test_drop_is_idempotent(self, adapter):
        drop_table(adapter.session.connection, adapter.table_name)
        drop_table(adapter.session.connection, adapter.table_name)

        adapter.ensure_table()
        assert stored_rows(adapter) == []

    def test_auto_create_disabled_skips_ddl(self, engine):
        adapter = SQLAdapter(engine, table_name="never_created", auto_create_table=False)

        connection = adapter.session.connection
        with connection.begin():
            tables = connection.exec_driver_sql(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='never_created'"
            ).all()
        assert tables == []
        adapter.close()

    def test_invalid_table_name_fails_construction(self, engine):
        with pytest.raises(SchemaError):
            SQLAdapter(engine, table_name="bad name")

    def test_failed_provisioning_disposes_owned_engine(self, tmp_path, monkeypatch):
        created = []

        def recording_engine(settings):
            engine = create_rule_engine(settings)
            engine.dispose = MagicMock(wraps=engine.dispose)
            created.append(engine)
            return engine

        monkeypatch.setattr(adapter_module, "create_rule_engine", recording_engine)

        with pytest.raises(SchemaError):
            SQLAdapter(f"sqlite:///{tmp_path / 'missing' / 'casbin.db'}", retry_delay=0)

        assert len(created) == 1
        created[0].dispose.assert_called_once()

    def test_failed_provisioning_from_settings_disposes_engine(self, tmp_path, monkeypatch):
        created = []

        def recording_engine(settings):
            engine = create_rule_engine(settings)
            engine.dispose = MagicMock(wraps=engine.dispose)
            created.append(engine)
            return engine

        monkeypatch.setattr(adapter_module, "create_rule_engine", recording_engine)
        settings = Settings(db_url=f"sqlite:///{tmp_path / 'missing' / 'casbin.db'}")

        with pytest.raises(SchemaError):
            SQLAdapter.from_settings(settings)

        created[0].dispose.assert_called()
