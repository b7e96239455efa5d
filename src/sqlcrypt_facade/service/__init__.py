"""
SQLCrypt facade REST API.

This module provides an HTTP surface over a single facade instance, for
clients that cannot embed the facade in-process.
"""

from .api import app, get_facade, run_query, start_api

__all__ = ["app", "get_facade", "run_query", "start_api"]
