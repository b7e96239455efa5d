"""
SQL driver interface for the SQLCrypt facade.

A driver prepares, binds, executes and fetches one statement at a time
over a single connection, reports per-column source metadata for result
sets, and exposes explicit transaction control. Backend exceptions,
including connection failures, are wrapped in DriverError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Sequence

from ..models.query_models import ColumnMeta


class DriverError(Exception):
    """Raised for any failure reported by the database backend."""


@dataclass
class StatementResult:
    """Outcome of executing one statement."""
    
    rows: list[dict[str, Any]] = field(default_factory=list)
    column_meta: dict[str, ColumnMeta] = field(default_factory=dict)
    last_insert_id: int | None = None


class SQLDriver(ABC):
    """
    Base class for database backends.
    
    Statements use ``?`` placeholders; backends with another paramstyle
    translate them.
    """
    
    # Backend name, as used in configuration
    name: str = ""
    
    @abstractmethod
    def execute(self, sql: str, params: Sequence[Any] = ()) -> StatementResult:
        """
        Execute one statement and fetch its rows, if any.
        
        Args:
            sql: SQL text with ``?`` placeholders
            params: Bound values, in placeholder order
            
        Returns:
            The StatementResult
            
        Raises:
            DriverError: If the backend rejects the statement
        """
    
    @property
    @abstractmethod
    def in_transaction(self) -> bool:
        """True if a transaction is currently open on the connection."""
    
    @abstractmethod
    def begin_transaction(self) -> None:
        """Open a transaction."""
    
    @abstractmethod
    def commit(self) -> None:
        """Commit the open transaction."""
    
    @abstractmethod
    def rollback(self) -> None:
        """Roll back the open transaction."""
    
    @abstractmethod
    def close(self) -> None:
        """Close the connection."""


def create_driver(name: str, settings: dict[str, Any]) -> SQLDriver:
    """
    Create the driver for a configured backend.
    
    Args:
        name: Backend name ("sqlite" or "pymysql")
        settings: Connection settings, as returned by
            SQLCryptConfig.get_database_settings()
            
    Returns:
        An unconnected SQLDriver; the connection opens on first use
        
    Raises:
        ValueError: If the backend name is unknown
    """
    if name == "sqlite":
        from .sqlite import SQLiteDriver
        
        return SQLiteDriver(database=settings.get("database", ":memory:"))
    
    if name in ("pymysql", "mysql"):
        from .mysql import MySQLDriver
        
        return MySQLDriver(
            host=settings.get("host", "localhost"),
            port=int(settings.get("port", 3306)),
            database=settings.get("database", ""),
            user=settings.get("user", "root"),
            password=settings.get("password", ""),
            charset=settings.get("charset", "utf8mb4"),
        )
    
    raise ValueError(f"Unknown database driver: {name}")
