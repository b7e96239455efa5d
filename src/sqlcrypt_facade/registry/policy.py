"""
Column policy registry implementation.

The registry is built once from configuration and never mutated
afterwards; every query reads it without synchronization.
"""

from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, field_validator


class HashAlgorithm(str, Enum):
    """Supported one-way hash algorithms."""
    
    # Deterministic HMAC, usable in equality predicates
    KEYED_HASH = "keyed_hash"
    
    # Salted Argon2id, never searchable
    PASSWORD_HASH = "password_hash"


class Normalization(str, Enum):
    """Value normalization applied before keyed hashing."""
    
    NONE = "none"
    EMAIL = "email"
    DIGITS = "digits"


class PolicyKind(str, Enum):
    """What the facade does to a column's values."""
    
    ENCRYPTED = "encrypted"
    HASHED = "hashed"


_ALGORITHM_ALIASES = {
    "hmac_sha256": HashAlgorithm.KEYED_HASH.value,
    "hmac": HashAlgorithm.KEYED_HASH.value,
    "argon2id": HashAlgorithm.PASSWORD_HASH.value,
    "argon2": HashAlgorithm.PASSWORD_HASH.value,
}

_NORMALIZATION_ALIASES = {
    "number": Normalization.DIGITS.value,
    "": Normalization.NONE.value,
}


class HashRule(BaseModel):
    """
    Hash rule for a single column.
    
    Built from a configuration entry such as
    ``{"type": "keyed_hash", "normalize": "email"}``.
    """
    
    model_config = ConfigDict(frozen=True)
    
    algorithm: HashAlgorithm
    normalize: Normalization = Normalization.NONE
    
    @field_validator("algorithm", mode="before")
    @classmethod
    def _resolve_algorithm_alias(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            return _ALGORITHM_ALIASES.get(value, value)
        return value
    
    @field_validator("normalize", mode="before")
    @classmethod
    def _resolve_normalization_alias(cls, value: Any) -> Any:
        if value is None:
            return Normalization.NONE.value
        if isinstance(value, str):
            value = value.strip().lower()
            return _NORMALIZATION_ALIASES.get(value, value)
        return value
    
    @classmethod
    def from_config(cls, entry: Mapping[str, Any]) -> "HashRule":
        """
        Create a hash rule from a configuration entry.
        
        Args:
            entry: Mapping with a ``type`` key and an optional ``normalize`` key
            
        Returns:
            HashRule instance
        """
        return cls(algorithm=entry.get("type"), normalize=entry.get("normalize"))
    
    @property
    def searchable(self) -> bool:
        """True if the hash can be used in an equality predicate."""
        return self.algorithm is HashAlgorithm.KEYED_HASH


class ColumnPolicy(BaseModel):
    """Resolved policy for one (table, column) pair."""
    
    model_config = ConfigDict(frozen=True)
    
    table: str
    column: str
    kind: PolicyKind
    rule: HashRule | None = None


class ColumnPolicyRegistry:
    """
    Static lookup of encrypted and hashed columns.
    
    Table and column names are matched case-insensitively, and a
    schema-qualified table (``db.users``) falls back to its bare name when
    only that is registered. A column that is configured as both encrypted
    and hashed resolves to its hash rule.
    """
    
    def __init__(
        self,
        encrypt_columns: Mapping[str, list[str]] | None = None,
        hash_columns: Mapping[str, Mapping[str, Mapping[str, Any]]] | None = None,
    ) -> None:
        """
        Initialize the registry.
        
        Args:
            encrypt_columns: Mapping of table name to encrypted column names
            hash_columns: Mapping of table name to {column: hash rule entry}
            
        Raises:
            pydantic.ValidationError: If a hash rule is malformed
        """
        encrypted: dict[str, frozenset[str]] = {}
        for table, columns in (encrypt_columns or {}).items():
            encrypted[table.lower()] = frozenset(column.lower() for column in columns or [])
        
        hashed: dict[str, Mapping[str, HashRule]] = {}
        for table, rules in (hash_columns or {}).items():
            hashed[table.lower()] = MappingProxyType({
                column.lower(): HashRule.from_config(entry or {})
                for column, entry in (rules or {}).items()
            })
        
        self._encrypted = MappingProxyType(encrypted)
        self._hashed = MappingProxyType(hashed)
    
    @classmethod
    def from_config(cls) -> "ColumnPolicyRegistry":
        """
        Build the registry from the global configuration.
        
        Returns:
            ColumnPolicyRegistry instance
        """
        from ..config import SQLCryptConfig
        
        encrypt_columns, hash_columns = SQLCryptConfig.get_column_policy()
        return cls(encrypt_columns, hash_columns)
    
    @staticmethod
    def _lookup(entries: Mapping[str, Any], table: str, default: Any) -> Any:
        key = table.lower()
        if key in entries:
            return entries[key]
        return entries.get(key.rsplit(".", 1)[-1], default)
    
    @property
    def has_hash_rules(self) -> bool:
        """True if any column carries a hash rule."""
        return any(self._hashed.values())
    
    @property
    def has_encrypted_columns(self) -> bool:
        """True if any column is configured for encryption."""
        return any(self._encrypted.values())
    
    def is_encrypted(self, table: str, column: str) -> bool:
        """
        Check whether a column is registered as encrypted.
        
        Args:
            table: Source table name
            column: Source column name
            
        Returns:
            True if the column's values are stored encrypted
        """
        if not table or not column:
            return False
        return column.lower() in self._lookup(self._encrypted, table, frozenset())
    
    def hash_rule(self, table: str, column: str) -> HashRule | None:
        """
        Get the hash rule for a column.
        
        Args:
            table: Table name
            column: Column name
            
        Returns:
            The HashRule, or None if the column is not hashed
        """
        if not table or not column:
            return None
        rules = self._lookup(self._hashed, table, None)
        if rules is None:
            return None
        return rules.get(column.lower())
    
    def policy_for(self, table: str, column: str) -> ColumnPolicy | None:
        """
        Resolve the write policy for a column, hash taking precedence.
        
        Args:
            table: Table name
            column: Column name
            
        Returns:
            The ColumnPolicy, or None if the column is stored as-is
        """
        rule = self.hash_rule(table, column)
        if rule is not None:
            return ColumnPolicy(table=table, column=column, kind=PolicyKind.HASHED, rule=rule)
        if self.is_encrypted(table, column):
            return ColumnPolicy(table=table, column=column, kind=PolicyKind.ENCRYPTED)
        return None
