"""
Data models for the SQLCrypt facade.

This module provides the result contract returned to callers and the
per-column metadata used to decide which result values to decrypt.
"""

from .query_models import ColumnMeta, QueryResult

__all__ = ["ColumnMeta", "QueryResult"]
