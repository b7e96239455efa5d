"""
INSERT ... SELECT emulation.

A server-side ``INSERT INTO t (cols) SELECT ...`` would copy ciphertext
encrypted for the source column into the destination verbatim, and would
never hash or encrypt columns that are plaintext at the source. The
emulator runs the SELECT through the decrypting read path instead, then
re-inserts the plaintext rows through the write transform in chunked
multi-row INSERTs.
"""

import logging
from typing import Any, Callable, Iterator, Sequence

from .db.base import DriverError, SQLDriver
from .models.query_models import QueryResult
from .sql.shape import InsertSelectPlan, StatementKind, StatementShape, parse_insert_select
from .transform.params import ParameterTransformer


logger = logging.getLogger(__name__)

# Rows per generated INSERT, to bound statement size
INSERT_SELECT_CHUNK_SIZE = 1000

UNSUPPORTED_INSERT_SELECT = "Unsupported INSERT ... SELECT form"


def quote_identifier(name: str) -> str:
    """Backtick-quote a possibly qualified identifier."""
    return ".".join("`" + part.replace("`", "``") + "`" for part in name.split("."))


def chunked(rows: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    """Yield consecutive slices of at most ``size`` rows."""
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


class InsertSelectEmulator:
    """
    Executes ``INSERT INTO t (cols) SELECT ...`` client-side.
    
    SELECT output columns are matched to destination columns by name, so
    callers alias the SELECT list to the destination column names.
    """
    
    def __init__(
        self,
        driver: SQLDriver,
        transformer: ParameterTransformer,
        read: Callable[[str, Sequence[Any]], QueryResult],
        chunk_size: int = INSERT_SELECT_CHUNK_SIZE,
    ) -> None:
        """
        Initialize the emulator.
        
        Args:
            driver: Database driver the inserts run on
            transformer: Write transform for the destination columns
            read: The facade's read path (WHERE hashing and decryption)
            chunk_size: Rows per generated INSERT statement
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.driver = driver
        self.transformer = transformer
        self.read = read
        self.chunk_size = chunk_size
    
    @staticmethod
    def build_insert(plan: InsertSelectPlan, row_count: int) -> str:
        """
        Build a multi-row INSERT for the destination.
        
        Args:
            plan: The parsed INSERT ... SELECT
            row_count: Number of placeholder groups
            
        Returns:
            SQL text with one ``(?, ...)`` group per row
        """
        group = "(" + ", ".join("?" for _ in plan.columns) + ")"
        columns = ", ".join(quote_identifier(column) for column in plan.columns)
        values = ", ".join(group for _ in range(row_count))
        return f"INSERT INTO {quote_identifier(plan.table)} ({columns}) VALUES {values}"
    
    def _rollback(self) -> None:
        """Roll back a transaction the emulator opened itself."""
        if not self.driver.in_transaction:
            return
        try:
            self.driver.rollback()
        except DriverError as e:
            logger.error("Rollback after failed INSERT ... SELECT also failed: %s", e)
    
    def run(self, sql: str, params: Sequence[Any]) -> QueryResult:
        """
        Emulate an INSERT ... SELECT statement.
        
        Args:
            sql: The INSERT ... SELECT statement
            params: Bound values; all of them belong to the SELECT
            
        Returns:
            QueryResult with empty data and the last insert id
        """
        plan = parse_insert_select(sql)
        if plan is None:
            logger.warning("Refusing to run unsupported INSERT ... SELECT form")
            return QueryResult(success=False, error=UNSUPPORTED_INSERT_SELECT)
        
        selected = self.read(plan.select_sql, params)
        if not selected.success:
            return QueryResult(success=False, error=selected.error)
        
        rows = selected.data
        if not rows:
            return QueryResult(success=True, last_insert_id=None)
        
        missing = [column for column in plan.columns if column not in rows[0]]
        if missing:
            logger.warning(
                "INSERT ... SELECT into %s: SELECT output has no column named %s; inserting NULL",
                plan.table, ", ".join(missing),
            )
        
        # Join a caller's transaction, otherwise open our own
        owns_transaction = not self.driver.in_transaction
        last_insert_id = None
        try:
            if owns_transaction:
                self.driver.begin_transaction()
            
            for chunk in chunked(rows, self.chunk_size):
                values = [row.get(column) for row in chunk for column in plan.columns]
                
                # Row i's j-th value always maps to plan.columns[j]
                shape = StatementShape(
                    StatementKind.INSERT,
                    target_table=plan.table,
                    assigned_columns=plan.columns * len(chunk),
                )
                values = self.transformer.transform_write(shape, values)
                
                result = self.driver.execute(self.build_insert(plan, len(chunk)), values)
                last_insert_id = result.last_insert_id
                logger.debug("Inserted %d rows into %s", len(chunk), plan.table)
            
            if owns_transaction:
                self.driver.commit()
        except DriverError as e:
            logger.error("INSERT ... SELECT into %s failed: %s", plan.table, e)
            if owns_transaction:
                logger.warning("Rolling back INSERT ... SELECT into %s", plan.table)
                self._rollback()
            return QueryResult(success=False, error=str(e))
        
        return QueryResult(success=True, last_insert_id=last_insert_id)
