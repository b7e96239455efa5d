"""
Column policy registry for the SQLCrypt facade.

This module provides the static lookup that declares, per table, which
columns are encrypted and which are one-way hashed.
"""

from .policy import (
    ColumnPolicy,
    ColumnPolicyRegistry,
    HashAlgorithm,
    HashRule,
    Normalization,
    PolicyKind,
)

__all__ = [
    "ColumnPolicy",
    "ColumnPolicyRegistry",
    "HashAlgorithm",
    "HashRule",
    "Normalization",
    "PolicyKind",
]
