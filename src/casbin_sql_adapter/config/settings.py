"""
Configuration settings for the casbin SQL adapter.

Settings can be configured via environment variables or a .env file.
"""

import re
from pathlib import Path
from typing import Optional
from urllib.parse import quote_plus

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# unquoted lower case, so DDL and rendered statements agree on every dialect
IDENTIFIER_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")

DEFAULT_PORTS = {
    "postgres": 5432,
    "mysql": 3306,
    "mariadb": 3306,
    "mssql": 1433,
    "oracle": 1521,
}


class Settings(BaseSettings):
    # Using a plain dict for model_config to avoid ConfigDict typing/overload issues
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    debug: bool = Field(default=False, alias="DEBUG")

    # Database Settings
    db_url: Optional[str] = Field(
        default=None,
        description="Full SQLAlchemy URL, overrides the individual parts",
        alias="DB_URL",
    )
    db_driver: str = Field(
        default="sqlite", description="SQLAlchemy driver", alias="DB_DRIVER"
    )
    db_path: str = Field(
        default="data/casbin.db", description="SQLite database path", alias="DB_PATH"
    )
    db_host: Optional[str] = Field(default=None, description="Database host", alias="DB_HOST")
    db_port: Optional[int] = Field(default=None, description="Database port", alias="DB_PORT")
    db_user: Optional[str] = Field(default=None, description="Database user", alias="DB_USER")
    db_password: Optional[str] = Field(
        default=None, description="Database password", alias="DB_PASSWORD"
    )
    db_name: Optional[str] = Field(default=None, description="Database name", alias="DB_NAME")
    db_schema: Optional[str] = Field(
        default=None, description="Database schema/search_path", alias="DB_SCHEMA"
    )
    db_echo: bool = Field(
        default=False, description="Enable SQLAlchemy echo logging", alias="DB_ECHO"
    )
    sqlite_busy_timeout_seconds: int = Field(
        default=30,
        description="SQLite busy timeout (seconds) when the database is locked",
        alias="SQLITE_BUSY_TIMEOUT_SECONDS",
    )

    # Rule table settings
    casbin_table_name: str = Field(
        default="casbin_rule", description="Policy rule table name", alias="CASBIN_TABLE_NAME"
    )
    casbin_auto_create_table: bool = Field(
        default=True,
        description="Create the rule table on adapter construction",
        alias="CASBIN_AUTO_CREATE_TABLE",
    )
    casbin_remove_policy_failed: bool = Field(
        default=False,
        description="Raise when a policy removal deletes no rows",
        alias="CASBIN_REMOVE_POLICY_FAILED",
    )
    casbin_escape_values: bool = Field(
        default=False,
        description="Quote rule values when handing lines to the policy model",
        alias="CASBIN_ESCAPE_VALUES",
    )
    casbin_batch_size: int = Field(
        default=1000,
        description="Pending insert rows flushed per batch",
        alias="CASBIN_BATCH_SIZE",
    )

    # Retry settings
    db_retry_attempts: int = Field(
        default=3,
        description="Attempts per storage operation before giving up",
        alias="DB_RETRY_ATTEMPTS",
    )
    db_retry_delay_seconds: float = Field(
        default=1.0,
        description="Delay between attempts (seconds)",
        alias="DB_RETRY_DELAY_SECONDS",
    )

    # logging
    log_file: Optional[str] = Field(default=None, description="Log file path", alias="LOG_FILE")
    log_level: str = Field(default="INFO", description="Log level", alias="LOG_LEVEL")

    @field_validator("casbin_table_name")
    @classmethod
    def validate_table_name(cls, value: str) -> str:
        value = value.strip()
        if not IDENTIFIER_PATTERN.match(value):
            raise ValueError(f"casbin_table_name must be a lower-case SQL identifier, got {value!r}")
        return value

    @field_validator("casbin_batch_size", "db_retry_attempts")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("value must be at least 1")
        return value

    @field_validator("db_retry_delay_seconds")
    @classmethod
    def validate_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("db_retry_delay_seconds must not be negative")
        return value

    @property
    def database_dsn(self) -> str:
        if self.db_url:
            return self.db_url

        driver = (self.db_driver or "sqlite").lower()
        if driver.startswith("sqlite"):
            if self.db_path == ":memory:":
                return f"{driver}://"
            db_path = Path(self.db_path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
            return f"{driver}:///{db_path.as_posix()}"

        return self._build_sql_dsn(driver)

    def _build_sql_dsn(self, driver: str) -> str:
        host = self.db_host or "localhost"
        family = driver.split("+", 1)[0]
        port = self.db_port or DEFAULT_PORTS.get(family)
        username = quote_plus(self.db_user) if self.db_user else ""
        password = quote_plus(self.db_password) if self.db_password else ""
        auth = ""
        if username:
            auth = username
            if password:
                auth += f":{password}"
            auth += "@"

        if port:
            host_part = f"{host}:{port}"
        else:
            host_part = host

        database = self.db_name or ""
        return f"{driver}://{auth}{host_part}/{database}"


settings = Settings()
