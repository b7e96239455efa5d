"""
SQL inspection for the SQLCrypt facade.

This module provides a minimal tokenizer and the shape classifier that
infers, without a full SQL parser, which placeholders and result columns
the facade has to transform.
"""

from .shape import (
    InsertSelectPlan,
    SelectProjection,
    StatementKind,
    StatementShape,
    WhereClause,
    WherePredicate,
    classify,
    find_where_clause,
    infer_select_columns,
    parse_insert_select,
)
from .tokenizer import Token, TokenType, to_format_paramstyle, tokenize

__all__ = [
    "InsertSelectPlan",
    "SelectProjection",
    "StatementKind",
    "StatementShape",
    "Token",
    "TokenType",
    "WhereClause",
    "WherePredicate",
    "classify",
    "find_where_clause",
    "infer_select_columns",
    "parse_insert_select",
    "to_format_paramstyle",
    "tokenize",
]
