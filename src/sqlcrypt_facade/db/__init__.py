"""
Database integration for the SQLCrypt facade.

This module provides the driver interface and its backends: SQLite via
the standard library and MySQL via PyMySQL.
"""

from .base import DriverError, SQLDriver, StatementResult, create_driver
from .sqlite import SQLiteDriver

__all__ = ["DriverError", "SQLDriver", "SQLiteDriver", "StatementResult", "create_driver"]
