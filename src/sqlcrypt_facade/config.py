"""
Configuration management for the SQLCrypt facade.

This module provides configuration utilities for controlling behavior
of the facade, including the database backend, the encryption keys and
the per-table column policy.
"""

import os
import sys
from pathlib import Path
from copy import deepcopy

import yaml


class SQLCryptConfig:
    """
    Configuration for the SQLCrypt facade.
    
    This class provides access to configuration settings, including
    the database connection, the encryption secrets and the column policy.
    """
    
    # Default configuration values
    _default_config: dict[str, object] = {
        "mode": "DEV",  # DEV or PROD
        "database": {
            "driver": "sqlite",  # sqlite or pymysql
            "host": "localhost",
            "port": 3306,
            "database": "sqlcrypt.db",
            "user": "root",
            "password": "",
            "charset": "utf8mb4",
        },
        "encryption": {
            "key": "",  # empty disables encryption entirely
            "pepper_key": "",  # empty skips keyed-hash columns
            "encrypt_columns": {},
            "hash_columns": {},
            "insert_select_chunk_size": 1000,
        },
    }
    
    # Instance configuration values, loaded from file or environment
    _config: dict[str, object] = {}
    
    # Flag indicating if the configuration has been initialized
    _initialized: bool = False
    
    @classmethod
    def initialize(cls, config_path: str | None = None) -> None:
        """
        Initialize the configuration.
        
        Args:
            config_path: Optional path to a YAML configuration file
        """
        cls._config = deepcopy(cls._default_config)
        
        if config_path:
            cls._load_from_file(config_path)
        
        # Environment always wins over the file
        cls._load_from_env()
        
        cls._initialized = True
    
    @classmethod
    def _merge(cls, values: dict) -> None:
        """
        Merge a loaded mapping into the configuration, section by section.
        
        Args:
            values: Mapping loaded from YAML
        """
        for section, section_values in values.items():
            if isinstance(section_values, dict) and isinstance(cls._config.get(section), dict):
                cls._config[section].update(section_values)
            else:
                cls._config[section] = section_values
    
    @classmethod
    def _load_from_file(cls, config_path: str) -> None:
        """
        Load configuration from a YAML file.
        
        Args:
            config_path: Path to the YAML configuration file
        """
        path = Path(config_path)
        if not path.exists():
            print(f"Configuration file not found: {config_path}", file=sys.stderr)
            sys.exit(1)
        
        try:
            with open(path, "r") as f:
                file_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            print(f"Error loading configuration file: {e}", file=sys.stderr)
            sys.exit(1)
        
        if file_config:
            cls._merge(file_config)
    
    @classmethod
    def _load_from_env(cls) -> None:
        """Load configuration from environment variables."""
        env_mode = os.environ.get("SQLCRYPT_MODE")
        if env_mode in ("DEV", "PROD"):
            cls._config["mode"] = env_mode
        
        database = cls._config["database"]
        for env_name, key in (
            ("SQLCRYPT_DB_DRIVER", "driver"),
            ("SQLCRYPT_DB_HOST", "host"),
            ("SQLCRYPT_DB_NAME", "database"),
            ("SQLCRYPT_DB_USER", "user"),
            ("SQLCRYPT_DB_PASSWORD", "password"),
        ):
            value = os.environ.get(env_name)
            if value:
                database[key] = value
        
        env_port = os.environ.get("SQLCRYPT_DB_PORT")
        if env_port and env_port.isdigit():
            database["port"] = int(env_port)
        
        # Secrets are usually injected through the environment
        env_key = os.environ.get("SQLCRYPT_ENCRYPTION_KEY")
        if env_key:
            cls._config["encryption"]["key"] = env_key
        
        env_pepper = os.environ.get("SQLCRYPT_PEPPER_KEY")
        if env_pepper:
            cls._config["encryption"]["pepper_key"] = env_pepper
    
    @classmethod
    def _ensure_initialized(cls) -> None:
        """Ensure the configuration is initialized."""
        if not cls._initialized:
            cls.initialize()
    
    @classmethod
    def get(cls, key: str, default: object = None) -> object:
        """
        Get a configuration value.
        
        Args:
            key: The configuration key to retrieve, dotted for nested values
            default: Default value to return if key is not found
            
        Returns:
            The configuration value, or default if not found
        """
        cls._ensure_initialized()
        
        if "." in key:
            value = cls._config
            for part in key.split("."):
                if isinstance(value, dict) and part in value:
                    value = value[part]
                else:
                    return default
            return value
        
        return cls._config.get(key, default)
    
    @classmethod
    def is_dev_mode(cls) -> bool:
        """
        Check if the system is in development mode.
        
        Returns:
            True if in development mode, False otherwise
        """
        return cls.get("mode") == "DEV"
    
    @classmethod
    def is_encryption_enabled(cls) -> bool:
        """
        Check if encryption is enabled.
        
        Encryption is enabled exactly when a non-empty key is configured.
        
        Returns:
            True if encryption is enabled, False otherwise
        """
        return bool(cls.get("encryption.key", ""))
    
    @classmethod
    def get_driver_name(cls) -> str:
        """
        Get the configured database backend.
        
        Returns:
            The backend name ("sqlite" or "pymysql")
        """
        return cls.get("database.driver", "sqlite")
    
    @classmethod
    def get_database_settings(cls) -> dict:
        """
        Get the database connection settings.
        
        Returns:
            Dictionary containing connection settings for the backend
        """
        return {
            "host": cls.get("database.host", "localhost"),
            "port": cls.get("database.port", 3306),
            "database": cls.get("database.database", "sqlcrypt.db"),
            "user": cls.get("database.user", "root"),
            "password": cls.get("database.password", ""),
            "charset": cls.get("database.charset", "utf8mb4"),
        }
    
    @classmethod
    def get_column_policy(cls) -> tuple[dict, dict]:
        """
        Get the raw column policy configuration.
        
        Returns:
            Tuple of (encrypt_columns, hash_columns) mappings
        """
        return (
            cls.get("encryption.encrypt_columns", {}) or {},
            cls.get("encryption.hash_columns", {}) or {},
        )
    
    @classmethod
    def load_from_secrets_file(cls, file_path: str) -> None:
        """
        Load configuration from a secrets file.
        
        This is a convenience method for loading the encryption key,
        pepper and database password from a file kept out of version control.
        
        Args:
            file_path: Path to the secrets file
        """
        cls._ensure_initialized()
        
        path = Path(file_path)
        if not path.exists():
            print(f"Secrets file not found: {file_path}")
            return
        
        try:
            with open(path, "r") as f:
                secrets = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            print(f"Error loading secrets file: {e}", file=sys.stderr)
            sys.exit(1)
        
        if secrets:
            cls._merge(secrets)
        
        print(f"Loaded configuration from secrets file: {file_path}")
