"""
Tests for the MySQL driver, using a stand-in for the PyMySQL connection.
"""

from types import SimpleNamespace

import pymysql
import pytest
from pymysql.constants import SERVER_STATUS

from sqlcrypt_facade.db import DriverError, create_driver
from sqlcrypt_facade.db.mysql import MySQLDriver, column_meta_from_fields, error_message
from sqlcrypt_facade.encryption import FieldEncryptor
from sqlcrypt_facade.models import ColumnMeta
from sqlcrypt_facade.query_facade import QueryFacade
from sqlcrypt_facade.registry import ColumnPolicyRegistry


class FakeCursor:
    """Cursor that returns canned rows and records its statements."""
    
    def __init__(self, connection: "FakeConnection") -> None:
        self.connection = connection
        self.description = None
        self.lastrowid = None
        self._rows = []
        self._result = None
    
    def __enter__(self) -> "FakeCursor":
        return self
    
    def __exit__(self, *exc_info: object) -> None:
        pass
    
    def execute(self, query, args=None) -> int:
        self.connection.executed.append((query, args))
        if self.connection.error is not None:
            raise self.connection.error
        if query.startswith("SELECT"):
            self.description = [(field.name,) for field in self.connection.fields]
            self._rows = list(self.connection.rows)
            self._result = SimpleNamespace(fields=self.connection.fields)
        else:
            self.lastrowid = 7
        return 1
    
    def fetchall(self) -> list:
        return self._rows


class FakeConnection:
    """Connection stand-in tracking transaction calls."""
    
    def __init__(self) -> None:
        self.executed = []
        self.calls = []
        self.rows = []
        self.fields = []
        self.error = None
        self.server_status = 0
    
    def cursor(self) -> FakeCursor:
        return FakeCursor(self)
    
    def begin(self) -> None:
        self.calls.append("begin")
        self.server_status |= SERVER_STATUS.SERVER_STATUS_IN_TRANS
    
    def commit(self) -> None:
        self.calls.append("commit")
        self.server_status &= ~SERVER_STATUS.SERVER_STATUS_IN_TRANS
    
    def rollback(self) -> None:
        self.calls.append("rollback")
        self.server_status &= ~SERVER_STATUS.SERVER_STATUS_IN_TRANS
    
    def close(self) -> None:
        self.calls.append("close")


def _field(name: str, org_name: str = "", org_table: str = "", table_name: str = "") -> SimpleNamespace:
    return SimpleNamespace(name=name, org_name=org_name, org_table=org_table, table_name=table_name)


@pytest.fixture
def connection(monkeypatch: pytest.MonkeyPatch) -> FakeConnection:
    fake = FakeConnection()
    connect_kwargs = {}
    
    def connect(**kwargs):
        connect_kwargs.update(kwargs)
        return fake
    
    monkeypatch.setattr(pymysql, "connect", connect)
    fake.connect_kwargs = connect_kwargs
    return fake


class TestMySQLDriver:
    """Tests for the MySQLDriver class."""
    
    def test_lazy_connect(self, connection: FakeConnection) -> None:
        """Test that nothing connects until the first statement."""
        driver = MySQLDriver(host="db", port=3307, database="app", user="u", password="p")
        assert driver.in_transaction is False
        assert connection.connect_kwargs == {}
        
        driver.execute("SELECT 1")
        
        assert connection.connect_kwargs["host"] == "db"
        assert connection.connect_kwargs["port"] == 3307
        assert connection.connect_kwargs["autocommit"] is True
    
    def test_paramstyle_translation(self, connection: FakeConnection) -> None:
        """Test that qmark placeholders are sent as %s with literal percents escaped."""
        driver = MySQLDriver()
        
        driver.execute("UPDATE t SET a = ? WHERE b LIKE '5%'", ["x"])
        driver.execute("DELETE FROM t WHERE b LIKE '5%'")
        
        assert connection.executed[0] == ("UPDATE t SET a = %s WHERE b LIKE '5%%'", ("x",))
        assert connection.executed[1] == ("DELETE FROM t WHERE b LIKE '5%'", None)
    
    def test_select_metadata(self, connection: FakeConnection) -> None:
        """Test rows and native column metadata."""
        connection.fields = [
            _field("who", org_name="name", org_table="users", table_name="u"),
            _field("n"),
        ]
        connection.rows = [("Alice", 1)]
        driver = MySQLDriver()
        
        result = driver.execute("SELECT u.name AS who, 1 AS n FROM users u")
        
        assert result.rows == [{"who": "Alice", "n": 1}]
        assert result.column_meta["who"] == ColumnMeta("who", "users", "name")
        assert result.column_meta["n"] == ColumnMeta("n", "", "")
    
    def test_write_result(self, connection: FakeConnection) -> None:
        """Test last insert id of a write."""
        result = MySQLDriver().execute("INSERT INTO t (a) VALUES (?)", [1])
        
        assert result.last_insert_id == 7
        assert result.rows == []
    
    def test_error_wrapped(self, connection: FakeConnection) -> None:
        """Test that PyMySQL errors surface as DriverError with the server message."""
        connection.error = pymysql.err.ProgrammingError(1146, "Table 'app.nope' doesn't exist")
        
        with pytest.raises(DriverError, match="doesn't exist"):
            MySQLDriver().execute("SELECT * FROM nope")
    
    def test_parameter_escape_error_wrapped(self, connection: FakeConnection) -> None:
        """Test that PyMySQL escaping failures surface as DriverError."""
        connection.error = TypeError("dict can not be used as parameter")
        
        with pytest.raises(DriverError, match="dict can not be used"):
            MySQLDriver().execute("SELECT * FROM users WHERE id = ?", [{"a": 1}])
    
    def test_connection_failure(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that connection errors surface as DriverError."""
        def connect(**kwargs):
            raise pymysql.err.OperationalError(2003, "Can't connect to MySQL server")
        
        monkeypatch.setattr(pymysql, "connect", connect)
        
        with pytest.raises(DriverError, match="MySQL connection failed: Can't connect"):
            MySQLDriver().execute("SELECT 1")
    
    def test_transactions(self, connection: FakeConnection) -> None:
        """Test transaction state from the server status flags."""
        driver = MySQLDriver()
        
        driver.begin_transaction()
        assert driver.in_transaction is True
        driver.commit()
        assert driver.in_transaction is False
        driver.begin_transaction()
        driver.rollback()
        driver.close()
        
        assert connection.calls == ["begin", "commit", "begin", "rollback", "close"]
        assert driver.in_transaction is False


class TestHelpers:
    """Tests for the PyMySQL helper functions."""
    
    def test_error_message(self) -> None:
        """Test server message extraction."""
        assert error_message(pymysql.err.OperationalError(1045, "Access denied")) == "Access denied"
        assert error_message(pymysql.err.InterfaceError("closed")) == "closed"
    
    def test_column_meta_falls_back_to_table_name(self) -> None:
        """Test metadata when the original table is not reported."""
        meta = column_meta_from_fields([_field("email", org_name="email", table_name="users")])
        
        assert meta["email"] == ColumnMeta("email", "users", "email")
    
    def test_create_driver(self) -> None:
        """Test backend selection by name."""
        driver = create_driver("pymysql", {"host": "h", "port": "3308", "database": "d"})
        
        assert isinstance(driver, MySQLDriver)
        assert driver.port == 3308


class TestMySQLFacade:
    """Tests for the facade running over the MySQL driver."""
    
    @pytest.fixture
    def facade(
        self,
        connection: FakeConnection,
        registry: ColumnPolicyRegistry,
        encryptor: FieldEncryptor,
    ) -> QueryFacade:
        return QueryFacade(MySQLDriver(), registry=registry, encryptor=encryptor)
    
    def test_expression_alias_decrypted(
        self,
        facade: QueryFacade,
        connection: FakeConnection,
        encryptor: FieldEncryptor,
    ) -> None:
        """Test decryption of an expression column named by a table__column alias."""
        connection.fields = [_field("users__name")]
        connection.rows = [(encryptor.encrypt_value("Alice"),)]
        
        result = facade.query("SELECT COALESCE(name, '') AS users__name FROM users")
        
        assert result.success is True
        assert result.data == [{"users__name": "Alice"}]
    
    def test_unsupported_parameter_fails_query(self, facade: QueryFacade, connection: FakeConnection) -> None:
        """Test that a parameter PyMySQL cannot escape fails the query instead of raising."""
        connection.error = TypeError("dict can not be used as parameter")
        
        result = facade.query("SELECT id FROM users WHERE id = ?", [{"a": 1}])
        
        assert result.success is False
        assert "dict can not be used" in result.error
