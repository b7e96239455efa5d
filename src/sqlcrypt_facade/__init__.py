"""
SQLCrypt Facade - transparent column-level cryptography for SQL.

This package sits between application code and a relational database,
encrypting and hashing bound values and decrypting result columns
according to a per-table column policy, inferred from the SQL text alone.
"""

from .config import SQLCryptConfig
from .db import DriverError, SQLDriver, SQLiteDriver, create_driver
from .encryption import DecryptionError, FieldEncryptor
from .models import ColumnMeta, QueryResult
from .query_facade import QueryFacade
from .registry import ColumnPolicyRegistry, HashAlgorithm, HashRule, Normalization

__version__ = "0.1.0"

__all__ = [
    "ColumnMeta",
    "ColumnPolicyRegistry",
    "DecryptionError",
    "DriverError",
    "FieldEncryptor",
    "HashAlgorithm",
    "HashRule",
    "Normalization",
    "QueryFacade",
    "QueryResult",
    "SQLCryptConfig",
    "SQLDriver",
    "SQLiteDriver",
    "create_driver",
]
