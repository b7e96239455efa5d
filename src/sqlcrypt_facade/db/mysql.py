"""
MySQL backend for the SQLCrypt facade.

This module provides a driver built on PyMySQL. MySQL reports the
original table and column of every result column, which is used as the
column metadata.
"""

import logging
from typing import Any, Iterable, Sequence

import pymysql
from pymysql.constants import SERVER_STATUS

from ..models.query_models import ColumnMeta
from ..sql.tokenizer import to_format_paramstyle
from .base import DriverError, SQLDriver, StatementResult


logger = logging.getLogger(__name__)


def error_message(error: pymysql.MySQLError) -> str:
    """
    Extract the server message from a PyMySQL error.
    
    PyMySQL errors carry ``(code, message)`` in their args.
    """
    if len(error.args) >= 2:
        return str(error.args[1])
    return str(error)


def column_meta_from_fields(fields: Iterable[Any]) -> dict[str, ColumnMeta]:
    """
    Build column metadata from PyMySQL field descriptors.
    
    Args:
        fields: FieldDescriptorPacket objects of a result set
        
    Returns:
        Mapping of output name to ColumnMeta
    """
    meta: dict[str, ColumnMeta] = {}
    for descriptor in fields:
        output = descriptor.name
        meta[output] = ColumnMeta(
            output_name=output,
            source_table=descriptor.org_table or descriptor.table_name or "",
            source_column=descriptor.org_name or "",
        )
    return meta


class MySQLDriver(SQLDriver):
    """
    MySQL driver using PyMySQL.
    
    The connection runs with autocommit on; transactions are opened with
    BEGIN and tracked through the server status flags.
    """
    
    name = "pymysql"
    
    def __init__(
        self,
        host: str = "localhost",
        port: int = 3306,
        database: str = "",
        user: str = "root",
        password: str = "",
        charset: str = "utf8mb4",
        connect_timeout: int = 10,
    ) -> None:
        """
        Initialize the MySQL driver.
        
        Args:
            host: Database host
            port: Database port
            database: Database name
            user: Database user
            password: Database password
            charset: Connection character set
            connect_timeout: Seconds to wait for the connection
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.charset = charset
        self.connect_timeout = connect_timeout
        self._connection: pymysql.connections.Connection | None = None
    
    def _connect(self) -> pymysql.connections.Connection:
        """Open the connection on first use."""
        if self._connection is None:
            try:
                self._connection = pymysql.connect(
                    host=self.host,
                    port=self.port,
                    user=self.user,
                    password=self.password,
                    database=self.database,
                    charset=self.charset,
                    autocommit=True,
                    connect_timeout=self.connect_timeout,
                )
            except pymysql.MySQLError as e:
                raise DriverError(f"MySQL connection failed: {error_message(e)}") from e
            logger.debug("Connected to MySQL at %s:%s", self.host, self.port)
        return self._connection
    
    def execute(self, sql: str, params: Sequence[Any] = ()) -> StatementResult:
        connection = self._connect()
        
        # PyMySQL interpolates %s placeholders only when args are given
        args = tuple(params) if params else None
        query = to_format_paramstyle(sql) if args else sql
        
        try:
            with connection.cursor() as cursor:
                cursor.execute(query, args)
                result = StatementResult(last_insert_id=cursor.lastrowid)
                if cursor.description:
                    names = [description[0] for description in cursor.description]
                    result.rows = [dict(zip(names, row)) for row in cursor.fetchall()]
                    fields = getattr(getattr(cursor, "_result", None), "fields", None) or []
                    result.column_meta = column_meta_from_fields(fields)
                return result
        except pymysql.MySQLError as e:
            raise DriverError(error_message(e)) from e
        except (TypeError, ValueError) as e:
            # Raised by PyMySQL while escaping unsupported parameter types
            raise DriverError(str(e)) from e
    
    @property
    def in_transaction(self) -> bool:
        if self._connection is None:
            return False
        return bool(self._connection.server_status & SERVER_STATUS.SERVER_STATUS_IN_TRANS)
    
    def begin_transaction(self) -> None:
        try:
            self._connect().begin()
        except pymysql.MySQLError as e:
            raise DriverError(error_message(e)) from e
    
    def commit(self) -> None:
        try:
            self._connect().commit()
        except pymysql.MySQLError as e:
            raise DriverError(error_message(e)) from e
    
    def rollback(self) -> None:
        try:
            self._connect().rollback()
        except pymysql.MySQLError as e:
            raise DriverError(error_message(e)) from e
    
    def close(self) -> None:
        if self._connection is not None:
            try:
                self._connection.close()
            except pymysql.MySQLError as e:
                logger.warning("Error closing MySQL connection: %s", error_message(e))
            self._connection = None
