# query_facade.py: column-encrypting query facade

"""
This module defines the public entry point of the SQLCrypt facade.

The facade sits between application code and the database. From the SQL
text and the configured column policy alone it decides which bound values
to encrypt or hash before execution and which result columns to decrypt
afterwards. Driver failures never raise past ``query()``; they come back
as an unsuccessful QueryResult.
"""

import logging
from typing import Any, Sequence

from .config import SQLCryptConfig
from .db.base import DriverError, SQLDriver, create_driver
from .encryption import FieldEncryptor
from .insert_select import INSERT_SELECT_CHUNK_SIZE, InsertSelectEmulator
from .models.query_models import QueryResult
from .registry.policy import ColumnPolicyRegistry
from .sql.shape import StatementKind, StatementShape, classify
from .transform.params import ParameterTransformer
from .transform.results import ResultDecryptor


logger = logging.getLogger(__name__)


class QueryFacade:
    """
    Transparent column cryptography over a single database connection.
    
    All calls are synchronous and must come from one thread at a time; the
    policy registry is immutable and shared by every query.
    """
    
    def __init__(
        self,
        driver: SQLDriver,
        registry: ColumnPolicyRegistry | None = None,
        encryptor: FieldEncryptor | None = None,
        chunk_size: int = INSERT_SELECT_CHUNK_SIZE,
    ) -> None:
        """
        Initialize the facade.
        
        Args:
            driver: Database driver
            registry: Column policy; an empty policy if omitted
            encryptor: Cryptographic primitives; disabled if omitted
            chunk_size: Rows per INSERT when emulating INSERT ... SELECT
        """
        self.driver = driver
        self.registry = registry or ColumnPolicyRegistry()
        self.encryptor = encryptor or FieldEncryptor()
        self.transformer = ParameterTransformer(self.registry, self.encryptor)
        self.decryptor = ResultDecryptor(self.registry, self.encryptor)
        self.emulator = InsertSelectEmulator(driver, self.transformer, self._read, chunk_size)
    
    @classmethod
    def from_config(cls) -> "QueryFacade":
        """
        Build a facade from the global configuration.
        
        Returns:
            QueryFacade instance; the connection opens on the first query
        """
        driver = create_driver(SQLCryptConfig.get_driver_name(), SQLCryptConfig.get_database_settings())
        return cls(
            driver,
            registry=ColumnPolicyRegistry.from_config(),
            encryptor=FieldEncryptor.from_config(),
            chunk_size=int(SQLCryptConfig.get("encryption.insert_select_chunk_size", INSERT_SELECT_CHUNK_SIZE)),
        )
    
    def query(self, sql: str, params: Sequence[Any] | None = None) -> QueryResult:
        """
        Execute a statement with transparent encryption and decryption.
        
        Args:
            sql: SQL text with ``?`` placeholders
            params: Bound values, in placeholder order
            
        Returns:
            QueryResult; ``data`` is filled for SELECT/SHOW and
            ``last_insert_id`` for INSERT/UPDATE
        """
        params = list(params or [])
        shape = classify(sql)
        
        if shape.kind is StatementKind.INSERT_SELECT:
            return self.emulator.run(sql, params)
        
        return self._execute(sql, params, shape)
    
    def _read(self, sql: str, params: Sequence[Any]) -> QueryResult:
        """Run a SELECT through the standard read path."""
        return self._execute(sql, list(params), classify(sql))
    
    def _execute(self, sql: str, params: list[Any], shape: StatementShape) -> QueryResult:
        params = self.transformer.transform(shape, params)
        
        try:
            result = self.driver.execute(sql, params)
        except DriverError as e:
            logger.error("Query failed: %s", e)
            return QueryResult(success=False, error=str(e))
        
        if shape.kind is StatementKind.SELECT:
            return QueryResult(success=True, data=self.decryptor.decrypt(result.rows, result.column_meta))
        
        if shape.is_write:
            return QueryResult(success=True, last_insert_id=result.last_insert_id)
        
        return QueryResult(success=True)
    
    def encrypt(self, value: Any) -> Any:
        """
        Encrypt a single value with the configured key.
        
        Args:
            value: The value to encrypt
            
        Returns:
            The encrypted blob, or the value if encryption is disabled
        """
        return self.encryptor.encrypt_value(value)
    
    def decrypt(self, value: Any) -> Any:
        """
        Decrypt a single value, returning it unchanged if it cannot be.
        
        Args:
            value: The stored value
            
        Returns:
            The plaintext, or the value as given
        """
        return self.encryptor.try_decrypt(value)
    
    def _transaction_call(self, action: str) -> bool:
        try:
            getattr(self.driver, action)()
        except DriverError as e:
            logger.error("%s failed: %s", action, e)
            return False
        return True
    
    def begin_transaction(self) -> bool:
        """
        Begin a transaction.
        
        Returns:
            True on success
        """
        return self._transaction_call("begin_transaction")
    
    def commit(self) -> bool:
        """
        Commit the current transaction.
        
        Returns:
            True on success
        """
        return self._transaction_call("commit")
    
    def rollback(self) -> bool:
        """
        Roll back the current transaction.
        
        Returns:
            True on success
        """
        return self._transaction_call("rollback")
    
    def close(self) -> None:
        """Close the database connection."""
        self.driver.close()
    
    def __enter__(self) -> "QueryFacade":
        return self
    
    def __exit__(self, *exc_info: object) -> None:
        self.close()
