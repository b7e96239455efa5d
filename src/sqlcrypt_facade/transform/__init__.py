"""
Value transforms for the SQLCrypt facade.

This module provides the positional parameter transforms applied before a
statement is executed and the result decryption applied after a SELECT.
"""

from .params import ParameterCursor, ParameterTransformer
from .results import ResultDecryptor

__all__ = ["ParameterCursor", "ParameterTransformer", "ResultDecryptor"]
