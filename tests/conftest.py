"""
Pytest configuration for SQLCrypt facade tests.
"""

import os
from typing import Any, Dict, Generator, Sequence

import pytest
from argon2 import PasswordHasher

from sqlcrypt_facade.db.base import DriverError, SQLDriver, StatementResult
from sqlcrypt_facade.db.sqlite import SQLiteDriver
from sqlcrypt_facade.encryption import FieldEncryptor
from sqlcrypt_facade.models import ColumnMeta
from sqlcrypt_facade.query_facade import QueryFacade
from sqlcrypt_facade.registry import ColumnPolicyRegistry


TEST_ENCRYPTION_KEY = "test-encryption-key-for-unit-testing"
TEST_PEPPER = "test-pepper-for-unit-testing"

ENCRYPT_COLUMNS = {
    "users": ["name", "email", "phone"],
    "backup": ["name", "email"],
}

HASH_COLUMNS = {
    "users": {
        "email_hash": {"type": "keyed_hash", "normalize": "email"},
        "phone_hash": {"type": "keyed_hash", "normalize": "digits"},
        "password": {"type": "password_hash"},
    },
}

USERS_DDL = (
    "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, email TEXT, phone TEXT, "
    "email_hash TEXT, phone_hash TEXT, password TEXT, note TEXT)"
)
BACKUP_DDL = "CREATE TABLE backup (id INTEGER, name TEXT, email TEXT)"


class RecordingDriver(SQLDriver):
    """
    In-memory driver that records every statement.
    
    SELECT statements return ``select_rows`` with ``column_meta``; every
    other statement succeeds unless its write index is ``fail_on_write``.
    """
    
    name = "recording"
    
    def __init__(self) -> None:
        self.select_rows: list[dict[str, Any]] = []
        self.column_meta: dict[str, ColumnMeta] = {}
        self.executed: list[tuple[str, list[Any]]] = []
        self.events: list[str] = []
        self.fail_on_write: int | None = None
        self.fail_select: str | None = None
        self._in_transaction = False
        self._writes = 0
    
    @property
    def writes(self) -> list[tuple[str, list[Any]]]:
        return [(sql, params) for sql, params in self.executed if not sql.startswith("SELECT")]
    
    def execute(self, sql: str, params: Sequence[Any] = ()) -> StatementResult:
        self.executed.append((sql, list(params)))
        if sql.startswith("SELECT"):
            if self.fail_select:
                raise DriverError(self.fail_select)
            return StatementResult(
                rows=[dict(row) for row in self.select_rows],
                column_meta=dict(self.column_meta),
            )
        
        self._writes += 1
        if self.fail_on_write == self._writes:
            raise DriverError(f"write {self._writes} failed")
        return StatementResult(last_insert_id=self._writes)
    
    @property
    def in_transaction(self) -> bool:
        return self._in_transaction
    
    def begin_transaction(self) -> None:
        self.events.append("begin")
        self._in_transaction = True
    
    def commit(self) -> None:
        self.events.append("commit")
        self._in_transaction = False
    
    def rollback(self) -> None:
        self.events.append("rollback")
        self._in_transaction = False
    
    def close(self) -> None:
        self.events.append("close")


@pytest.fixture
def registry() -> ColumnPolicyRegistry:
    """Column policy shared by the tests."""
    return ColumnPolicyRegistry(ENCRYPT_COLUMNS, HASH_COLUMNS)


@pytest.fixture
def encryptor() -> FieldEncryptor:
    """Encryptor with test secrets and cheap Argon2 parameters."""
    return FieldEncryptor(
        encryption_key=TEST_ENCRYPTION_KEY,
        pepper_key=TEST_PEPPER,
        password_hasher=PasswordHasher(time_cost=1, memory_cost=8, parallelism=1),
    )


@pytest.fixture
def recording_driver() -> RecordingDriver:
    """Driver that records statements instead of running them."""
    return RecordingDriver()


@pytest.fixture
def facade(registry: ColumnPolicyRegistry, encryptor: FieldEncryptor) -> Generator[QueryFacade, None, None]:
    """
    Facade over an in-memory SQLite database with the users and backup tables.
    """
    facade = QueryFacade(SQLiteDriver(":memory:"), registry=registry, encryptor=encryptor)
    for ddl in (USERS_DDL, BACKUP_DDL):
        result = facade.query(ddl)
        assert result.success, result.error
    
    yield facade
    
    facade.close()


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """
    Remove SQLCRYPT_* environment variables for the test, restoring them afterwards.
    """
    saved: Dict[str, str] = {key: value for key, value in os.environ.items() if key.startswith("SQLCRYPT_")}
    for key in saved:
        del os.environ[key]
    
    yield
    
    for key in [key for key in os.environ if key.startswith("SQLCRYPT_")]:
        del os.environ[key]
    os.environ.update(saved)
