"""
Encryption utilities for the SQLCrypt facade.

This module provides the single-value cryptographic primitives used to
protect column values: symmetric encryption, keyed hashing and password
hashing.
"""

from .field_encryptor import DecryptionError, FieldEncryptor, normalize_digits, normalize_email

__all__ = ["DecryptionError", "FieldEncryptor", "normalize_digits", "normalize_email"]
