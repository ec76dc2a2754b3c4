"""
Pytest configuration and fixtures for casbin-sql-adapter tests
"""
import sys
from pathlib import Path

import pytest

# Ensure the `src/` directory is available for imports.
# pytest executes from the repository root, but our package lives in `src/`.
ROOT_DIR = Path(__file__).parent.parent
SRC_DIR = ROOT_DIR / "src"

for path in (ROOT_DIR, SRC_DIR):
    path_str = str(path)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from casbin_sql_adapter.config import Settings
from casbin_sql_adapter.database import create_rule_engine
from casbin_sql_adapter.persist import SQLAdapter

from .helpers import new_model


@pytest.fixture
def engine():
    """Shared in-memory SQLite engine"""
    engine = create_rule_engine(Settings(db_url="sqlite://"))
    yield engine
    engine.dispose()


@pytest.fixture
def adapter(engine):
    """Adapter over the in-memory engine, retrying without delay"""
    adapter = SQLAdapter(engine, retry_delay=0)
    yield adapter
    adapter.close()


@pytest.fixture
def model():
    """Empty casbin model with p, g and g2 assertions"""
    return new_model()
