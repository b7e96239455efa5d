"""
Field encryption implementation.

This module provides the core cryptographic functionality for securing
column values before they reach the database.

Encrypted values are stored as base64 text whose decoded bytes are
``iv (16 bytes) || ciphertext``, produced by AES-256-CBC with PKCS7
padding. The AES key is the SHA-256 digest of the configured secret.
"""

import base64
import binascii
import hashlib
import hmac
import logging
import os
import re
import unicodedata
from typing import Any

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..registry.policy import HashAlgorithm, HashRule, Normalization


logger = logging.getLogger(__name__)

IV_SIZE = 16
BLOCK_SIZE_BITS = 128

_NON_DIGITS = re.compile(r"[^0-9]")


class DecryptionError(ValueError):
    """Raised when a value is not a blob this key can decrypt."""


def normalize_email(value: Any) -> Any:
    """
    Normalize an e-mail-like value before hashing.
    
    Strips surrounding whitespace, folds full-width characters to their
    ASCII forms and lowercases.
    """
    if value is None:
        return None
    value = unicodedata.normalize("NFKC", str(value).strip())
    return value.lower()


def normalize_digits(value: Any) -> Any:
    """Normalize a phone/postal-code-like value to its ASCII digits only."""
    if value is None:
        return None
    value = unicodedata.normalize("NFKC", str(value).strip())
    return _NON_DIGITS.sub("", value)


_NORMALIZERS = {
    Normalization.EMAIL: normalize_email,
    Normalization.DIGITS: normalize_digits,
}


class FieldEncryptor:
    """
    Handles single-value encryption, decryption and hashing.
    
    An empty encryption key disables encryption: values pass through
    unchanged in both directions. An empty pepper disables keyed hashing.
    """
    
    def __init__(
        self,
        encryption_key: str = "",
        pepper_key: str = "",
        password_hasher: PasswordHasher | None = None,
    ) -> None:
        """
        Initialize the field encryptor.
        
        Args:
            encryption_key: Secret from which the AES key is derived
            pepper_key: Secret key for the keyed hash
            password_hasher: Optional Argon2 hasher (tests use cheap parameters)
        """
        self.encryption_enabled = bool(encryption_key)
        self.keyed_hash_enabled = bool(pepper_key)
        
        # The AES key is fixed for the process lifetime
        self._key = hashlib.sha256(encryption_key.encode("utf-8")).digest() if encryption_key else b""
        self._pepper = pepper_key.encode("utf-8")
        self._password_hasher = password_hasher or PasswordHasher()
    
    @classmethod
    def from_config(cls) -> "FieldEncryptor":
        """
        Create an encryptor from the global configuration.
        
        Returns:
            FieldEncryptor instance
        """
        from ..config import SQLCryptConfig
        
        return cls(
            encryption_key=SQLCryptConfig.get("encryption.key", "") or "",
            pepper_key=SQLCryptConfig.get("encryption.pepper_key", "") or "",
        )
    
    @staticmethod
    def _to_bytes(value: Any) -> bytes:
        if isinstance(value, bytes):
            return value
        return str(value).encode("utf-8")
    
    def encrypt_value(self, value: Any) -> Any:
        """
        Encrypt a value with a fresh random IV.
        
        Args:
            value: The value to encrypt; non-strings are stringified
            
        Returns:
            Base64 blob, or the value unchanged if it is None or
            encryption is disabled
        """
        if value is None or not self.encryption_enabled:
            return value
        
        iv = os.urandom(IV_SIZE)
        
        padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
        padded = padder.update(self._to_bytes(value)) + padder.finalize()
        
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        
        return base64.b64encode(iv + ciphertext).decode("ascii")
    
    def _decrypt_block(self, iv: bytes, ciphertext: bytes) -> str:
        if not ciphertext or len(ciphertext) % IV_SIZE:
            raise DecryptionError("Ciphertext is not a whole number of blocks")
        
        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        
        unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
        try:
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except ValueError as e:
            # Covers bad padding (wrong key) and UnicodeDecodeError
            raise DecryptionError(str(e)) from e
    
    def decrypt_value(self, value: Any) -> Any:
        """
        Decrypt a blob produced by encrypt_value.
        
        Blobs written by older deployments, in which the bytes after the IV
        are themselves base64 text, are also accepted.
        
        Args:
            value: Base64 blob
            
        Returns:
            The plaintext string, or the value unchanged if it is None or
            encryption is disabled
            
        Raises:
            DecryptionError: If the value is not a blob this key can decrypt
        """
        if value is None or not self.encryption_enabled:
            return value
        
        try:
            data = base64.b64decode(self._to_bytes(value), validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError("Value is not base64") from e
        
        if len(data) <= IV_SIZE:
            raise DecryptionError("Value is too short to hold an IV")
        iv, ciphertext = data[:IV_SIZE], data[IV_SIZE:]
        
        try:
            return self._decrypt_block(iv, ciphertext)
        except DecryptionError:
            try:
                legacy = base64.b64decode(ciphertext, validate=True)
            except (binascii.Error, ValueError):
                raise DecryptionError("Value could not be decrypted") from None
            return self._decrypt_block(iv, legacy)
    
    def try_decrypt(self, value: Any) -> Any:
        """
        Decrypt a value, returning it untouched on failure.
        
        Args:
            value: Stored column value
            
        Returns:
            The plaintext, or the original value if it cannot be decrypted
        """
        try:
            return self.decrypt_value(value)
        except DecryptionError:
            logger.debug("Leaving undecryptable value as stored")
            return value
    
    def keyed_hash(self, value: Any) -> Any:
        """
        Compute the deterministic HMAC-SHA256 hex digest of a value.
        
        Args:
            value: The value to hash
            
        Returns:
            Hex digest, or the value unchanged if it is None or no pepper
            is configured
        """
        if value is None or not self.keyed_hash_enabled:
            return value
        return hmac.new(self._pepper, self._to_bytes(value), hashlib.sha256).hexdigest()
    
    def password_hash(self, value: Any) -> Any:
        """
        Compute a salted Argon2id hash of a value.
        
        Args:
            value: The value to hash
            
        Returns:
            Argon2 encoded hash, or None for None
        """
        if value is None:
            return None
        return self._password_hasher.hash(self._to_bytes(value))
    
    def verify_password(self, stored_hash: str, value: Any) -> bool:
        """
        Check a plaintext against a stored Argon2 hash.
        
        Args:
            stored_hash: The encoded hash read from the database
            value: The candidate plaintext
            
        Returns:
            True if the plaintext matches
        """
        try:
            return self._password_hasher.verify(stored_hash, self._to_bytes(value))
        except (VerificationError, InvalidHashError):
            return False
    
    def apply_hash_rule(self, rule: HashRule, value: Any) -> Any:
        """
        Normalize a value then hash it according to a rule.
        
        Args:
            rule: The column's hash rule
            value: The bound value
            
        Returns:
            The hashed value
        """
        if value is None:
            return None
        
        if rule.algorithm is HashAlgorithm.PASSWORD_HASH:
            return self.password_hash(value)
        
        if not self.keyed_hash_enabled:
            return value
        
        normalizer = _NORMALIZERS.get(rule.normalize)
        if normalizer is not None:
            value = normalizer(value)
        return self.keyed_hash(value)
