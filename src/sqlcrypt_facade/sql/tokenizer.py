"""
Minimal SQL tokenizer.

Produces a flat stream of typed tokens, enough for the shape classifier
to match the statement forms it supports. It is not a SQL parser: it only
knows about identifiers, quoting, literals, comments, placeholders and
punctuation.
"""

from dataclasses import dataclass
from enum import Enum


class TokenType(str, Enum):
    """Kinds of token produced by the tokenizer."""
    
    WORD = "word"  # bare identifier or keyword
    QUOTED = "quoted"  # `identifier` or "identifier"
    STRING = "string"  # 'literal'
    NUMBER = "number"
    PLACEHOLDER = "placeholder"  # ?
    PUNCT = "punct"  # ( ) , . ; =
    OPERATOR = "operator"  # anything else: < >= != + * ...


@dataclass(frozen=True)
class Token:
    """A single token with its offset in the source text."""
    
    type: TokenType
    value: str
    position: int
    
    @property
    def upper(self) -> str:
        """Uppercased value, for keyword comparison."""
        return self.value.upper()
    
    def is_keyword(self, *keywords: str) -> bool:
        """True if this is a bare word matching one of the keywords."""
        return self.type is TokenType.WORD and self.value.upper() in keywords
    
    def is_punct(self, *symbols: str) -> bool:
        """True if this is one of the given punctuation symbols."""
        return self.type is TokenType.PUNCT and self.value in symbols
    
    @property
    def is_identifier(self) -> bool:
        """True for bare or quoted identifiers."""
        return self.type in (TokenType.WORD, TokenType.QUOTED)


_PUNCTUATION = "(),.;="
_OPERATOR_CHARS = "<>!+-*/%&|^~:@"
_IDENT_CHARS = "_$"


def _is_ident_char(char: str) -> bool:
    return char.isalnum() or char in _IDENT_CHARS


def _skip_quoted(sql: str, start: int, quote: str) -> int:
    """
    Return the offset just past the closing quote.
    
    Doubled quotes and backslash escapes are honoured; an unterminated
    literal runs to the end of the text.
    """
    i = start + 1
    length = len(sql)
    while i < length:
        char = sql[i]
        if char == "\\" and quote != "`":
            i += 2
            continue
        if char == quote:
            if i + 1 < length and sql[i + 1] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    return length


def tokenize(sql: str) -> list[Token]:
    """
    Split SQL text into tokens.
    
    Whitespace and comments (``-- ...``, ``# ...``, ``/* ... */``) are
    dropped. Quoted identifiers are returned without their delimiters.
    
    Args:
        sql: The SQL statement
        
    Returns:
        List of tokens in textual order
    """
    tokens: list[Token] = []
    i = 0
    length = len(sql)
    
    while i < length:
        char = sql[i]
        
        if char.isspace():
            i += 1
            continue
        
        # Comments
        if char == "#" or (char == "-" and sql.startswith("--", i)):
            newline = sql.find("\n", i)
            i = length if newline == -1 else newline + 1
            continue
        if char == "/" and sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            i = length if end == -1 else end + 2
            continue
        
        if char == "?":
            tokens.append(Token(TokenType.PLACEHOLDER, "?", i))
            i += 1
            continue
        
        if char in "`\"":
            end = _skip_quoted(sql, i, char)
            closed = end - 1 > i and sql[end - 1] == char
            inner = sql[i + 1:end - 1] if closed else sql[i + 1:end]
            tokens.append(Token(TokenType.QUOTED, inner.replace(char * 2, char), i))
            i = end
            continue
        
        if char == "'":
            end = _skip_quoted(sql, i, char)
            tokens.append(Token(TokenType.STRING, sql[i:end], i))
            i = end
            continue
        
        if char.isdigit():
            start = i
            while i < length and (sql[i].isalnum() or sql[i] == "."):
                i += 1
            tokens.append(Token(TokenType.NUMBER, sql[start:i], start))
            continue
        
        if _is_ident_char(char):
            start = i
            while i < length and _is_ident_char(sql[i]):
                i += 1
            tokens.append(Token(TokenType.WORD, sql[start:i], start))
            continue
        
        if char in _PUNCTUATION:
            tokens.append(Token(TokenType.PUNCT, char, i))
            i += 1
            continue
        
        # Group runs of operator characters (>=, <>, !=, ||, :=)
        start = i
        i += 1
        while i < length and (sql[i] in _OPERATOR_CHARS or sql[i] == "=") and sql[i] not in "-/":
            i += 1
        tokens.append(Token(TokenType.OPERATOR, sql[start:i], start))
    
    return tokens


def count_placeholders(tokens: list[Token]) -> int:
    """Count the ``?`` placeholders in a token list."""
    return sum(1 for token in tokens if token.type is TokenType.PLACEHOLDER)


def to_format_paramstyle(sql: str) -> str:
    """
    Rewrite ``?`` placeholders to the ``%s`` paramstyle.
    
    Every literal ``%`` is doubled so the text survives %-interpolation;
    question marks inside quotes and comments are left alone.
    
    Args:
        sql: SQL text using qmark placeholders
        
    Returns:
        SQL text using format placeholders
    """
    positions = {token.position for token in tokenize(sql) if token.type is TokenType.PLACEHOLDER}
    parts = []
    for offset, char in enumerate(sql):
        if offset in positions:
            parts.append("%s")
        elif char == "%":
            parts.append("%%")
        else:
            parts.append(char)
    return "".join(parts)
