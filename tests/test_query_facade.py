"""
Tests for the QueryFacade class.
"""

import pytest

from sqlcrypt_facade.config import SQLCryptConfig
from sqlcrypt_facade.db import SQLiteDriver
from sqlcrypt_facade.encryption import FieldEncryptor
from sqlcrypt_facade.query_facade import QueryFacade
from sqlcrypt_facade.registry import ColumnPolicyRegistry

from conftest import RecordingDriver


def _insert_user(facade: QueryFacade, name: str, email: str, phone: str = "", password: str = "pw") -> int:
    result = facade.query(
        "INSERT INTO users (name, email, email_hash, phone_hash, password, note) VALUES (?, ?, ?, ?, ?, ?)",
        [name, email, email, phone, password, f"note for {name}"],
    )
    assert result.success, result.error
    return result.last_insert_id


class TestQueryFacade:
    """End-to-end tests over SQLite."""
    
    def test_insert_stores_ciphertext(self, facade: QueryFacade, encryptor: FieldEncryptor) -> None:
        """Test that encrypted and hashed columns never hold the plaintext."""
        user_id = _insert_user(facade, "Alice", "alice@example.com", "090-1234-5678")
        
        stored = facade.driver.execute("SELECT * FROM users WHERE id = ?", [user_id]).rows[0]
        
        assert stored["name"] != "Alice"
        assert encryptor.decrypt_value(stored["name"]) == "Alice"
        assert stored["email_hash"] == encryptor.keyed_hash("alice@example.com")
        assert stored["phone_hash"] == encryptor.keyed_hash("09012345678")
        assert encryptor.verify_password(stored["password"], "pw") is True
        assert stored["note"] == "note for Alice"
    
    def test_select_decrypts(self, facade: QueryFacade) -> None:
        """Test that SELECT results come back as plaintext."""
        _insert_user(facade, "Alice", "alice@example.com")
        
        result = facade.query("SELECT name, email, note FROM users")
        
        assert result.success is True
        assert result.data == [{"name": "Alice", "email": "alice@example.com", "note": "note for Alice"}]
        assert "last_insert_id" not in result.to_dict()
    
    def test_select_star_and_alias(self, facade: QueryFacade) -> None:
        """Test decryption through * and through a table-qualified alias."""
        _insert_user(facade, "Alice", "alice@example.com")
        
        star = facade.query("SELECT * FROM users u").data[0]
        aliased = facade.query("SELECT u.name AS who FROM users AS u").data[0]
        
        assert star["name"] == "Alice"
        assert aliased == {"who": "Alice"}
    
    def test_alias_fallback(self, facade: QueryFacade) -> None:
        """Test that a table__column alias names the source of an expression."""
        _insert_user(facade, "Alice", "alice@example.com")
        
        result = facade.query("SELECT COALESCE(name, '') AS users__name, COALESCE(name, '') AS raw FROM users")
        
        row = result.data[0]
        assert row["users__name"] == "Alice"
        assert row["raw"] != "Alice"
    
    def test_search_by_hash(self, facade: QueryFacade) -> None:
        """Test equality search on keyed-hash columns with normalization."""
        _insert_user(facade, "Alice", "alice@example.com", "090-1234-5678")
        _insert_user(facade, "Bob", "bob@example.com", "080-0000-0000")
        
        by_email = facade.query("SELECT name FROM users WHERE email_hash = ?", ["  BOB@Example.com"])
        by_phone = facade.query("SELECT name FROM users WHERE phone_hash = ?", ["09012345678"])
        
        assert by_email.data == [{"name": "Bob"}]
        assert by_phone.data == [{"name": "Alice"}]
    
    def test_password_predicate_is_literal(self, facade: QueryFacade) -> None:
        """Test that a password column cannot be matched by equality."""
        _insert_user(facade, "Alice", "alice@example.com", password="secret")
        
        result = facade.query("SELECT name FROM users WHERE password = ?", ["secret"])
        
        assert result.success is True
        assert result.data == []
    
    def test_update_and_delete(self, facade: QueryFacade) -> None:
        """Test that UPDATE and DELETE locate rows through hashed predicates."""
        _insert_user(facade, "Alice", "alice@example.com")
        
        updated = facade.query("UPDATE users SET name = ? WHERE email_hash = ?", ["Alicia", "ALICE@example.com"])
        assert updated.success is True
        assert "last_insert_id" in updated.to_dict()
        assert facade.query("SELECT name FROM users").data == [{"name": "Alicia"}]
        
        deleted = facade.query("DELETE FROM users WHERE email_hash = ?", ["alice@example.com"])
        assert deleted.success is True
        assert "last_insert_id" not in deleted.to_dict()
        assert facade.query("SELECT COUNT(*) AS n FROM users").data == [{"n": 0}]
    
    def test_plaintext_left_in_encrypted_column(self, facade: QueryFacade) -> None:
        """Test that values written before encryption was enabled are returned as stored."""
        facade.driver.execute("INSERT INTO users (name) VALUES ('legacy')")
        
        assert facade.query("SELECT name FROM users").data == [{"name": "legacy"}]
    
    def test_null_values(self, facade: QueryFacade) -> None:
        """Test that NULL is stored and returned as NULL."""
        facade.query("INSERT INTO users (name, email_hash) VALUES (?, ?)", [None, None])
        
        assert facade.query("SELECT name, email_hash FROM users").data == [{"name": None, "email_hash": None}]
    
    def test_driver_error(self, facade: QueryFacade) -> None:
        """Test that backend errors come back as an unsuccessful result."""
        result = facade.query("SELECT * FROM missing_table")
        
        assert result.success is False
        assert "missing_table" in result.error
        assert result.to_dict() == {"success": False, "error": result.error, "data": []}
    
    def test_other_statements(self, facade: QueryFacade) -> None:
        """Test that DDL runs untransformed with no data."""
        result = facade.query("CREATE INDEX idx_email_hash ON users (email_hash)")
        
        assert result.to_dict() == {"success": True, "error": "", "data": []}
    
    def test_encrypt_decrypt_helpers(self, facade: QueryFacade) -> None:
        """Test the single-value helpers."""
        blob = facade.encrypt("value")
        
        assert blob != "value"
        assert facade.decrypt(blob) == "value"
        assert facade.decrypt("not a blob") == "not a blob"
    
    def test_transactions(self, facade: QueryFacade) -> None:
        """Test explicit commit and rollback."""
        assert facade.begin_transaction() is True
        _insert_user(facade, "Alice", "alice@example.com")
        assert facade.rollback() is True
        
        assert facade.begin_transaction() is True
        _insert_user(facade, "Bob", "bob@example.com")
        assert facade.commit() is True
        
        assert facade.query("SELECT name FROM users").data == [{"name": "Bob"}]
    
    def test_transaction_errors(self, facade: QueryFacade) -> None:
        """Test that transaction failures are reported as False."""
        assert facade.commit() is False
        assert facade.begin_transaction() is True
        assert facade.begin_transaction() is False
        assert facade.rollback() is True
    
    def test_encryption_disabled(self, registry: ColumnPolicyRegistry) -> None:
        """Test that without keys values are stored as given."""
        with QueryFacade(SQLiteDriver(), registry=registry) as facade:
            facade.query("CREATE TABLE users (name TEXT, email_hash TEXT)")
            facade.query("INSERT INTO users (name, email_hash) VALUES (?, ?)", ["Alice", "A@B.C"])
            
            raw = facade.driver.execute("SELECT name, email_hash FROM users").rows
            
            assert raw == [{"name": "Alice", "email_hash": "A@B.C"}]
            assert facade.query("SELECT name FROM users WHERE email_hash = ?", ["A@B.C"]).data == [{"name": "Alice"}]
    
    def test_context_manager_closes(self, recording_driver: RecordingDriver) -> None:
        """Test that leaving the context closes the driver."""
        with QueryFacade(recording_driver):
            pass
        
        assert recording_driver.events == ["close"]


class TestFromConfig:
    """Tests for building a facade from configuration."""
    
    def setup_method(self) -> None:
        """Reset the configuration state."""
        SQLCryptConfig._config = {}
        SQLCryptConfig._initialized = False
    
    def teardown_method(self) -> None:
        """Reset the configuration state."""
        SQLCryptConfig._config = {}
        SQLCryptConfig._initialized = False
    
    def test_from_config(self, clean_env: None) -> None:
        """Test that the configured policy, keys and backend are used."""
        SQLCryptConfig.initialize()
        SQLCryptConfig._config["database"]["database"] = ":memory:"
        SQLCryptConfig._config["encryption"].update({
            "key": "k",
            "pepper_key": "p",
            "encrypt_columns": {"people": ["name"]},
            "insert_select_chunk_size": 50,
        })
        
        facade = QueryFacade.from_config()
        
        assert isinstance(facade.driver, SQLiteDriver)
        assert facade.emulator.chunk_size == 50
        assert facade.registry.is_encrypted("people", "name") is True
        
        facade.query("CREATE TABLE people (name TEXT)")
        facade.query("INSERT INTO people (name) VALUES (?)", ["Carol"])
        
        assert facade.query("SELECT name FROM people").data == [{"name": "Carol"}]
        assert facade.driver.execute("SELECT name FROM people").rows[0]["name"] != "Carol"
        facade.close()
    
    def test_unknown_driver(self, clean_env: None) -> None:
        """Test that an unknown backend name is rejected."""
        SQLCryptConfig.initialize()
        SQLCryptConfig._config["database"]["driver"] = "oracle"
        
        with pytest.raises(ValueError):
            QueryFacade.from_config()
