"""
Parameter transform engine.

Applies encryption and hashing to bound values purely by position: the
shape classifier says which placeholder assigns which column, and the
transforms walk the ordered parameter list with a shared cursor.
"""

import logging
from typing import Any, Sequence

from ..encryption import FieldEncryptor
from ..registry.policy import ColumnPolicyRegistry, PolicyKind
from ..sql.shape import StatementKind, StatementShape, WhereClause, find_where_clause


logger = logging.getLogger(__name__)


class ParameterCursor:
    """
    Position in an ordered parameter list.
    
    The write transform leaves the cursor after the last placeholder of the
    SET/VALUES clause; the WHERE transform continues from there.
    """
    
    def __init__(self, values: Sequence[Any]) -> None:
        self.values = list(values)
        self.position = 0
    
    @property
    def has_current(self) -> bool:
        """True while the cursor points at a bound value."""
        return self.position < len(self.values)
    
    @property
    def current(self) -> Any:
        return self.values[self.position]
    
    def replace(self, value: Any) -> None:
        """Replace the value under the cursor."""
        self.values[self.position] = value
    
    def advance(self, count: int = 1) -> None:
        self.position += count
    
    def seek(self, position: int) -> None:
        """
        Move to an absolute placeholder index.
        
        Raises:
            ValueError: If asked to move backwards over transformed values
        """
        if position < self.position:
            raise ValueError(f"Cannot seek back from {self.position} to {position}")
        self.position = position


class ParameterTransformer:
    """
    Encrypts and hashes bound values according to the column policy.
    
    Transforms never reorder or drop parameters: the output always has the
    same length as the input.
    """
    
    def __init__(self, registry: ColumnPolicyRegistry, encryptor: FieldEncryptor) -> None:
        """
        Initialize the transformer.
        
        Args:
            registry: The column policy registry
            encryptor: Primitives used to encrypt and hash values
        """
        self.registry = registry
        self.encryptor = encryptor
    
    def _write_value(self, table: str, column: str, value: Any) -> Any:
        """Transform one assigned value, hash taking precedence over encryption."""
        policy = self.registry.policy_for(table, column)
        if policy is None:
            return value
        
        if policy.kind is PolicyKind.HASHED:
            if policy.rule.searchable and not self.encryptor.keyed_hash_enabled:
                # No pepper configured: the hash rule is skipped
                if self.registry.is_encrypted(table, column):
                    return self.encryptor.encrypt_value(value)
                return value
            return self.encryptor.apply_hash_rule(policy.rule, value)
        
        return self.encryptor.encrypt_value(value)
    
    def apply_write(self, shape: StatementShape, cursor: ParameterCursor) -> None:
        """
        Transform the SET/VALUES placeholders of a write statement.
        
        Args:
            shape: The statement's shape
            cursor: Cursor over the bound values; left after the last
                assigned placeholder
        """
        if shape.is_empty:
            return
        
        cursor.seek(shape.write_start)
        for column in shape.assigned_columns:
            if not cursor.has_current:
                break
            if column:
                cursor.replace(self._write_value(shape.target_table, column, cursor.current))
            cursor.advance()
    
    def apply_where(self, where: WhereClause | None, cursor: ParameterCursor) -> None:
        """
        Hash the values of ``col = ?`` predicates on keyed-hash columns.
        
        Password-hashed columns are never transformed here: a salted hash
        cannot be matched by equality, so the value goes through as given.
        
        Args:
            where: The statement's WHERE clause, if any
            cursor: Cursor over the bound values
        """
        if where is None or not where.predicates or not self.registry.has_hash_rules:
            return
        
        if where.start < cursor.position:
            logger.debug("WHERE clause overlaps assigned placeholders; skipping predicate hashing")
            return
        
        cursor.seek(where.start)
        predicates = {predicate.offset: predicate for predicate in where.predicates}
        for offset in range(where.placeholder_count):
            if not cursor.has_current:
                break
            predicate = predicates.get(offset)
            if predicate is not None:
                rule = self.registry.hash_rule(predicate.table, predicate.column)
                if rule is not None and rule.searchable:
                    cursor.replace(self.encryptor.apply_hash_rule(rule, cursor.current))
            cursor.advance()
    
    def transform_write(self, shape: StatementShape, values: Sequence[Any]) -> list[Any]:
        """
        Apply the write transform to a parameter list.
        
        Args:
            shape: Shape whose assigned columns map the leading placeholders
            values: Bound values
            
        Returns:
            New list of values; placeholders beyond the assigned columns
            are unchanged
        """
        cursor = ParameterCursor(values)
        self.apply_write(shape, cursor)
        return cursor.values
    
    def transform_where(self, sql: str, values: Sequence[Any], fallback_table: str = "") -> list[Any]:
        """
        Apply the WHERE-predicate transform to a parameter list.
        
        Args:
            sql: The SQL statement
            values: Bound values
            fallback_table: Table for unqualified columns (UPDATE/DELETE target);
                the first FROM table is used when empty
            
        Returns:
            New list of values
        """
        cursor = ParameterCursor(values)
        self.apply_where(find_where_clause(sql, fallback_table), cursor)
        return cursor.values
    
    def transform(self, shape: StatementShape, values: Sequence[Any]) -> list[Any]:
        """
        Apply every transform a statement kind calls for.
        
        INSERT/UPDATE get the write transform then the WHERE transform;
        SELECT/DELETE get the WHERE transform only.
        
        Args:
            shape: The statement's shape
            values: Bound values
            
        Returns:
            New list of values
        """
        cursor = ParameterCursor(values)
        if shape.is_write:
            self.apply_write(shape, cursor)
        if shape.kind in (StatementKind.INSERT, StatementKind.UPDATE, StatementKind.SELECT, StatementKind.DELETE):
            self.apply_where(shape.where, cursor)
        return cursor.values
