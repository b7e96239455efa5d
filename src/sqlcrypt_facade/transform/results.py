"""
Result decryption engine.

Decrypts the result columns whose source (table, column) is registered as
encrypted. Sources come from column metadata, falling back to output
aliases of the form ``table__column``.
"""

from typing import Any, Mapping, Sequence

from ..encryption import FieldEncryptor
from ..models.query_models import ColumnMeta
from ..registry.policy import ColumnPolicyRegistry


ALIAS_SEPARATOR = "__"


def resolve_source(output_name: str, meta: ColumnMeta | None) -> tuple[str, str]:
    """
    Resolve the source (table, column) of a result column.
    
    Args:
        output_name: The column's name in the result set
        meta: Metadata reported for the column, if any
        
    Returns:
        Tuple of (table, column); either may be empty if unknown
    """
    if meta is not None and meta.is_complete:
        return meta.source_table, meta.source_column
    
    # Fallback: an alias such as users__email names its source
    if ALIAS_SEPARATOR in output_name:
        table, column = output_name.split(ALIAS_SEPARATOR, 1)
        return table.strip(), column.strip()
    
    return "", ""


class ResultDecryptor:
    """
    Decrypts fetched rows using per-column metadata.
    
    Usable on its own so INSERT ... SELECT emulation can decrypt the rows of
    its inner SELECT.
    """
    
    def __init__(self, registry: ColumnPolicyRegistry, encryptor: FieldEncryptor) -> None:
        """
        Initialize the decryptor.
        
        Args:
            registry: The column policy registry
            encryptor: Primitives used to decrypt values
        """
        self.registry = registry
        self.encryptor = encryptor
    
    def encrypted_outputs(self, output_names: Sequence[str], col_meta: Mapping[str, ColumnMeta]) -> set[str]:
        """
        Work out which output columns hold encrypted values.
        
        Args:
            output_names: Column names of the result set
            col_meta: Metadata by output name
            
        Returns:
            Set of output names to decrypt
        """
        encrypted = set()
        for name in output_names:
            table, column = resolve_source(name, col_meta.get(name))
            if self.registry.is_encrypted(table, column):
                encrypted.add(name)
        return encrypted
    
    def decrypt(self, rows: list[dict[str, Any]], col_meta: Mapping[str, ColumnMeta]) -> list[dict[str, Any]]:
        """
        Decrypt every registered encrypted column of every row.
        
        A value that cannot be decrypted is returned as stored. Hashed
        columns are never touched.
        
        Args:
            rows: Fetched rows, keyed by output name
            col_meta: Metadata by output name
            
        Returns:
            New list of rows with decrypted values
        """
        if not rows or not self.encryptor.encryption_enabled or not self.registry.has_encrypted_columns:
            return rows
        
        # Every row of a result set has the same columns
        encrypted = self.encrypted_outputs(list(rows[0].keys()), col_meta)
        if not encrypted:
            return rows
        
        decrypted_rows = []
        for row in rows:
            decrypted_rows.append({
                name: self.encryptor.try_decrypt(value) if name in encrypted else value
                for name, value in row.items()
            })
        return decrypted_rows
