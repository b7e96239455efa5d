#!/usr/bin/env python3
"""
SQLCrypt facade entry point.

This script starts the SQLCrypt facade API server or demonstrates the
facade in action, based on command line arguments.
"""

import argparse
import os
import sys

from sqlcrypt_facade.config import SQLCryptConfig
from sqlcrypt_facade.db import SQLiteDriver
from sqlcrypt_facade.encryption import FieldEncryptor
from sqlcrypt_facade.logging_config import setup_logging
from sqlcrypt_facade.query_facade import QueryFacade
from sqlcrypt_facade.registry import ColumnPolicyRegistry
from sqlcrypt_facade.service import start_api


# Column policy used by the demonstration
DEMO_ENCRYPT_COLUMNS = {
    "users": ["name", "email"],
    "users_backup": ["name", "email"],
}
DEMO_HASH_COLUMNS = {
    "users": {
        "email_hash": {"type": "keyed_hash", "normalize": "email"},
        "password": {"type": "password_hash"},
    },
}


def parse_args() -> argparse.Namespace:
    """
    Parse command line arguments.
    
    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description="SQLCrypt Facade")
    
    # API server options
    parser.add_argument(
        "--host", 
        default="0.0.0.0", 
        help="Host to bind to (default: 0.0.0.0)"
    )
    
    parser.add_argument(
        "--port", 
        type=int, 
        default=8000, 
        help="Port to bind to (default: 8000)"
    )
    
    parser.add_argument(
        "--config", 
        help="Path to configuration file"
    )
    
    parser.add_argument(
        "--secrets",
        help="Path to a secrets file holding keys and passwords"
    )
    
    parser.add_argument(
        "--mode", 
        choices=["DEV", "PROD"], 
        help="Override operation mode (DEV or PROD)"
    )
    
    parser.add_argument(
        "--reload", 
        action="store_true", 
        help="Enable auto-reload for development"
    )
    
    # Demo options
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Run a demonstration against an in-memory SQLite database"
    )
    
    return parser.parse_args()


def run_demo() -> None:
    """Run a demonstration of the facade against an in-memory database."""
    print("Running SQLCrypt facade demo...")
    
    facade = QueryFacade(
        SQLiteDriver(":memory:"),
        registry=ColumnPolicyRegistry(DEMO_ENCRYPT_COLUMNS, DEMO_HASH_COLUMNS),
        encryptor=FieldEncryptor(
            encryption_key="demo-only-encryption-key",
            pepper_key="demo-only-pepper",
        ),
    )
    
    with facade:
        for table in ("users", "users_backup"):
            facade.query(
                f"CREATE TABLE {table} (id INTEGER PRIMARY KEY, name TEXT, email TEXT, "
                "email_hash TEXT, password TEXT)"
            )
        
        result = facade.query(
            "INSERT INTO users (name, email, email_hash, password) VALUES (?, ?, ?, ?)",
            ["Jane Doe", "jane@example.com", "Jane@Example.com ", "s3cret"],
        )
        print(f"Inserted user with id {result.last_insert_id}")
        
        # What the database actually stores
        raw = facade.driver.execute("SELECT name, email, email_hash, password FROM users").rows[0]
        print("Stored row:")
        for column, value in raw.items():
            print(f"  {column}: {value}")
        
        # Equality search on the keyed hash, with decryption on the way out
        result = facade.query("SELECT id, name, email FROM users WHERE email_hash = ?", ["jane@example.com"])
        print(f"Found by e-mail: {result.data}")
        
        result = facade.query(
            "INSERT INTO users_backup (id, name, email) SELECT id, name, email FROM users WHERE id = ?",
            [1],
        )
        print(f"Copied users into users_backup: success={result.success}")
        
        result = facade.query("SELECT b.name AS users_backup__name FROM users_backup b")
        print(f"Backup rows: {result.data}")
    
    print("Demo completed successfully!")


def main() -> None:
    """Main entry point for the SQLCrypt facade."""
    args = parse_args()
    
    # Set environment variables from command line
    if args.mode:
        os.environ["SQLCRYPT_MODE"] = args.mode
    
    # Initialize configuration
    SQLCryptConfig.initialize(args.config)
    
    if args.secrets:
        SQLCryptConfig.load_from_secrets_file(args.secrets)
    
    setup_logging()
    
    # Print startup information
    mode = SQLCryptConfig.get("mode")
    print(f"SQLCrypt Facade - {mode} mode")
    print(f"Encryption enabled: {SQLCryptConfig.is_encryption_enabled()}")
    
    if args.demo:
        run_demo()
        return
    
    # Otherwise, start the API server
    print(f"Starting API server on {args.host}:{args.port}")
    
    try:
        start_api(host=args.host, port=args.port, reload=args.reload)
    except KeyboardInterrupt:
        print("Service stopped")
        sys.exit(0)
    except OSError as e:
        print(f"Error starting service: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
