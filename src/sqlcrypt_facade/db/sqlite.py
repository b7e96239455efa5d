"""
SQLite backend for the SQLCrypt facade.

sqlite3 only reports output column names, so the source table and column
of each output are inferred from the SELECT list.
"""

import logging
import sqlite3
from typing import Any, Sequence

from ..sql.shape import infer_select_columns
from .base import DriverError, SQLDriver, StatementResult


logger = logging.getLogger(__name__)


class SQLiteDriver(SQLDriver):
    """
    SQLite driver using the standard library sqlite3 module.
    
    The connection runs in autocommit mode; transactions are opened and
    closed explicitly with BEGIN/COMMIT/ROLLBACK.
    """
    
    name = "sqlite"
    
    def __init__(self, database: str = ":memory:", timeout: float = 5.0) -> None:
        """
        Initialize the SQLite driver.
        
        Args:
            database: Path to the database file, or ":memory:"
            timeout: Seconds to wait on a locked database
        """
        self.database = database
        self.timeout = timeout
        self._connection: sqlite3.Connection | None = None
    
    def _connect(self) -> sqlite3.Connection:
        """Open the connection on first use."""
        if self._connection is None:
            try:
                self._connection = sqlite3.connect(
                    self.database,
                    timeout=self.timeout,
                    isolation_level=None,
                    check_same_thread=False,
                )
            except sqlite3.Error as e:
                raise DriverError(f"SQLite connection failed: {e}") from e
            logger.debug("Opened SQLite database %s", self.database)
        return self._connection
    
    def execute(self, sql: str, params: Sequence[Any] = ()) -> StatementResult:
        connection = self._connect()
        try:
            cursor = connection.execute(sql, tuple(params))
        except sqlite3.Error as e:
            raise DriverError(str(e)) from e
        
        try:
            result = StatementResult(last_insert_id=cursor.lastrowid)
            if cursor.description is not None:
                names = [description[0] for description in cursor.description]
                result.rows = [dict(zip(names, row)) for row in cursor.fetchall()]
                result.column_meta = infer_select_columns(sql).resolve(names)
            return result
        except sqlite3.Error as e:
            raise DriverError(str(e)) from e
        finally:
            cursor.close()
    
    @property
    def in_transaction(self) -> bool:
        return self._connection is not None and self._connection.in_transaction
    
    def _run(self, statement: str) -> None:
        try:
            self._connect().execute(statement)
        except sqlite3.Error as e:
            raise DriverError(str(e)) from e
    
    def begin_transaction(self) -> None:
        self._run("BEGIN")
    
    def commit(self) -> None:
        self._run("COMMIT")
    
    def rollback(self) -> None:
        self._run("ROLLBACK")
    
    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
