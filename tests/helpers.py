"""Shared helpers for adapter tests"""
from pathlib import Path

from casbin.model import Model
from sqlalchemy import select

MODEL_PATH = Path(__file__).with_name("rbac_model.conf")


def new_model():
    """Empty casbin model with p, g and g2 assertions"""
    model = Model()
    model.load_model(str(MODEL_PATH))
    return model


def model_with(*rules):
    """casbin model holding ``(sec, ptype, rule)`` entries"""
    model = new_model()
    for sec, ptype, rule in rules:
        model.add_policy(sec, ptype, rule)
    return model


def stored_rows(adapter):
    """Rows of the adapter's table as (ptype, v0..v5) tuples in insertion order"""
    table = adapter.table
    connection = adapter.session.connection
    with connection.begin():
        result = connection.execute(
            select(table.c.ptype, table.c.v0, table.c.v1, table.c.v2, table.c.v3, table.c.v4, table.c.v5)
            .order_by(table.c.id)
        )
        return [tuple(row) for row in result]


def sorted_policy(rules):
    return sorted(tuple(rule) for rule in rules)


def install_failing_trigger(adapter, value="boom"):
    """Make every insert of a rule whose v0 equals ``value`` abort"""
    connection = adapter.session.connection
    with connection.begin():
        connection.exec_driver_sql(
            f"CREATE TRIGGER fail_on_{value} BEFORE INSERT ON {adapter.table_name} "
            f"WHEN NEW.v0 = '{value}' BEGIN SELECT RAISE(ABORT, 'rejected'); END"
        )
