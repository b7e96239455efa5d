"""
SQL shape classifier.

Infers the structural facts the facade needs from a statement's text:
statement kind, target table, which ``?`` placeholders assign which
columns, the equality predicates of the WHERE clause, and the source
column behind each SELECT output.

Only the statement forms below are understood; anything else yields an
empty shape and is executed untransformed.

    SELECT|SHOW ... [FROM t [AS a] [JOIN u [AS b] ...]] [WHERE ...]
    INSERT [IGNORE] INTO t (cols) VALUES (...)[, (...)] [ON DUPLICATE KEY UPDATE ...]
    INSERT [IGNORE] INTO t SET col = ?, ... [ON DUPLICATE KEY UPDATE ...]
    INSERT INTO t (cols) SELECT ...
    UPDATE t [AS a] SET col = ?, ... [WHERE ...]
    DELETE FROM t [WHERE ...]

UNION and nested subqueries are not supported. Placeholders inside a
subquery are counted, so later positions stay aligned, but are never
transformed.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from ..models.query_models import ColumnMeta
from .tokenizer import Token, TokenType, count_placeholders, tokenize


logger = logging.getLogger(__name__)


class StatementKind(str, Enum):
    """Statement kinds the facade distinguishes."""

    SELECT = "select"  # SELECT and SHOW
    INSERT = "insert"
    INSERT_SELECT = "insert_select"
    UPDATE = "update"
    DELETE = "delete"
    OTHER = "other"


@dataclass(frozen=True)
class WherePredicate:
    """A ``col = ?`` predicate, ``offset`` counted from the WHERE clause's first placeholder."""

    offset: int
    table: str
    column: str


@dataclass(frozen=True)
class WhereClause:
    """Placeholders of a WHERE clause and the equality predicates among them."""

    start: int
    placeholder_count: int
    predicates: tuple[WherePredicate, ...] = ()


@dataclass(frozen=True)
class StatementShape:
    """
    Structural facts about one statement.

    ``assigned_columns[i]`` is the column assigned by placeholder
    ``write_start + i``. A ``None`` entry is a placeholder inside the
    SET/VALUES clause that does not assign a column directly (for example
    one nested in a function call); it is consumed but never transformed.
    """

    kind: StatementKind
    target_table: str = ""
    assigned_columns: tuple[str | None, ...] = ()
    write_start: int = 0
    where: WhereClause | None = None

    @property
    def is_empty(self) -> bool:
        """True if no table or no assigned column was found."""
        return not self.target_table or not any(self.assigned_columns)

    @property
    def is_write(self) -> bool:
        """True for INSERT and UPDATE statements."""
        return self.kind in (StatementKind.INSERT, StatementKind.UPDATE)


@dataclass(frozen=True)
class InsertSelectPlan:
    """Parsed ``INSERT INTO t (cols) SELECT ...`` statement."""

    table: str
    columns: tuple[str, ...]
    select_sql: str


@dataclass
class SelectProjection:
    """
    Output-to-source mapping of a SELECT list.

    ``wildcard_table`` is set when the list contains a ``*`` (or ``t.*``)
    over a single known table; any output not mapped explicitly is then
    attributed to it. Wildcards over different or unknown tables leave it
    empty and set ``wildcard_ambiguous``.
    """

    columns: dict[str, ColumnMeta] = field(default_factory=dict)
    wildcard_table: str = ""
    wildcard_ambiguous: bool = False

    def add_wildcard(self, table: str) -> None:
        """
        Record a wildcard in the SELECT list.

        Args:
            table: Table the wildcard expands, or "" if unknown
        """
        if self.wildcard_ambiguous:
            return
        if not table or (self.wildcard_table and self.wildcard_table.lower() != table.lower()):
            self.wildcard_table = ""
            self.wildcard_ambiguous = True
            return
        self.wildcard_table = table

    def resolve(self, output_names: list[str]) -> dict[str, ColumnMeta]:
        """
        Build per-output metadata for the names a result set actually has.

        Args:
            output_names: Column names reported by the driver

        Returns:
            Mapping of output name to ColumnMeta
        """
        resolved: dict[str, ColumnMeta] = {}
        for name in output_names:
            meta = self.columns.get(name)
            if meta is None and self.wildcard_table:
                meta = ColumnMeta(name, self.wildcard_table, name)
            resolved[name] = meta or ColumnMeta(name)
        return resolved


# Keywords that end a table reference, so they are never taken as an alias
_NOT_ALIASES = frozenset({
    "WHERE", "JOIN", "LEFT", "RIGHT", "INNER", "OUTER", "CROSS", "NATURAL",
    "STRAIGHT_JOIN", "ON", "USING", "SET", "ORDER", "GROUP", "LIMIT", "HAVING",
    "UNION", "FOR", "LOCK", "WINDOW", "USE", "FORCE", "IGNORE", "PARTITION",
    "VALUES", "VALUE", "SELECT", "INTO", "FROM", "AS", "DUPLICATE", "OFFSET",
    "RETURNING", "EXCEPT", "INTERSECT",
})

# Keywords that end a WHERE clause at the outer level
_WHERE_TERMINATORS = frozenset({
    "GROUP", "ORDER", "LIMIT", "HAVING", "WINDOW", "FOR", "LOCK", "UNION",
    "INTO", "RETURNING",
})

# Keywords that end a SET assignment list
_SET_TERMINATORS = frozenset({"WHERE", "ORDER", "LIMIT", "ON", "RETURNING"})

_INSERT_MODIFIERS = frozenset({"LOW_PRIORITY", "DELAYED", "HIGH_PRIORITY", "IGNORE"})
_UPDATE_MODIFIERS = frozenset({"LOW_PRIORITY", "IGNORE"})
_DELETE_MODIFIERS = frozenset({"LOW_PRIORITY", "QUICK", "IGNORE"})
_SELECT_MODIFIERS = frozenset({
    "ALL", "DISTINCT", "DISTINCTROW", "HIGH_PRIORITY", "STRAIGHT_JOIN",
    "SQL_SMALL_RESULT", "SQL_BIG_RESULT", "SQL_BUFFER_RESULT", "SQL_NO_CACHE",
    "SQL_CALC_FOUND_ROWS",
})

_PREDICATE_LEADERS = frozenset({"WHERE", "AND", "OR", "NOT", "XOR"})


class _TokenStream:
    """Cursor over a token list for the recursive-descent matcher."""

    def __init__(self, tokens: list[Token], index: int = 0) -> None:
        self.tokens = tokens
        self.index = index

    def peek(self, ahead: int = 0) -> Token | None:
        position = self.index + ahead
        if position < len(self.tokens):
            return self.tokens[position]
        return None

    def next(self) -> Token | None:
        token = self.peek()
        if token is not None:
            self.index += 1
        return token

    @property
    def at_end(self) -> bool:
        return self.index >= len(self.tokens)

    def accept_keyword(self, *keywords: str) -> Token | None:
        token = self.peek()
        if token is not None and token.is_keyword(*keywords):
            self.index += 1
            return token
        return None

    def accept_punct(self, symbol: str) -> Token | None:
        token = self.peek()
        if token is not None and token.is_punct(symbol):
            self.index += 1
            return token
        return None

    def skip_keywords(self, keywords: frozenset[str]) -> None:
        while self.accept_keyword(*keywords):
            pass

    def placeholders_before(self) -> int:
        """Number of placeholders preceding the current position."""
        return count_placeholders(self.tokens[:self.index])

    def qualified_name(self) -> list[str]:
        """
        Read ``name`` or ``a.b(.c)`` and return its parts.

        Returns an empty list, without consuming anything, if the current
        token is not an identifier.
        """
        token = self.peek()
        if token is None or not token.is_identifier:
            return []
        parts = [self.next().value]
        while self.peek() is not None and self.peek().is_punct(".") and \
                self.peek(1) is not None and self.peek(1).is_identifier:
            self.index += 1
            parts.append(self.next().value)
        return parts

    def expression(self, terminators: frozenset[str] = frozenset()) -> list[Token]:
        """
        Consume one expression: tokens up to a ``,`` or unbalanced ``)``
        at depth zero, a ``;``, or a terminator keyword at depth zero.
        """
        collected: list[Token] = []
        depth = 0
        while not self.at_end:
            token = self.peek()
            if depth == 0 and (
                token.is_punct(",", ")", ";") or token.is_keyword(*terminators)
            ):
                break
            if token.is_punct("("):
                depth += 1
            elif token.is_punct(")"):
                depth -= 1
            collected.append(self.next())
        return collected

    def skip_group(self) -> None:
        """Skip a parenthesized group whose ``(`` is the current token."""
        depth = 0
        while not self.at_end:
            token = self.next()
            if token.is_punct("("):
                depth += 1
            elif token.is_punct(")"):
                depth -= 1
                if depth == 0:
                    return


def _assignment_slots(expression: list[Token], column: str | None) -> list[str | None]:
    """
    Map an assigned expression's placeholders to columns.

    Only a lone ``?`` assigns the column; placeholders nested in a larger
    expression are consumed without a column.
    """
    if len(expression) == 1 and expression[0].type is TokenType.PLACEHOLDER:
        return [column]
    return [None] * count_placeholders(expression)


def _parse_assignments(stream: _TokenStream, terminators: frozenset[str]) -> list[str | None] | None:
    """
    Parse ``col = expr, col = expr, ...``.

    Returns:
        Placeholder-to-column slots, or None if the list is malformed
    """
    slots: list[str | None] = []
    while True:
        name = stream.qualified_name()
        if not name or not stream.accept_punct("="):
            return None
        slots.extend(_assignment_slots(stream.expression(terminators), name[-1]))
        if not stream.accept_punct(","):
            return slots


def _parse_column_list(stream: _TokenStream) -> list[str] | None:
    """
    Parse ``(col, col, ...)`` with the stream on the ``(``.

    Returns:
        Column names, or None if an entry is not a plain column reference
    """
    if not stream.accept_punct("("):
        return None
    columns: list[str] = []
    while True:
        name = stream.qualified_name()
        if not name:
            return None
        columns.append(name[-1])
        if stream.accept_punct(")"):
            return columns
        if not stream.accept_punct(","):
            return None


def _parse_values_rows(stream: _TokenStream, columns: list[str]) -> list[str | None] | None:
    """Parse one or more ``(expr, ...)`` rows after VALUES."""
    slots: list[str | None] = []
    while True:
        if not stream.accept_punct("("):
            return None
        position = 0
        while True:
            column = columns[position] if position < len(columns) else None
            slots.extend(_assignment_slots(stream.expression(), column))
            position += 1
            if stream.accept_punct(")"):
                break
            if not stream.accept_punct(","):
                return None
        if not stream.accept_punct(","):
            return slots


def _table_reference(stream: _TokenStream) -> tuple[str, str] | None:
    """
    Read ``table [[AS] alias]``.

    Returns:
        Tuple of (table, alias), the alias empty when absent, or None if
        the reference is not a plain table name
    """
    parts = stream.qualified_name()
    if not parts:
        return None
    table = ".".join(parts)
    alias = ""
    if stream.accept_keyword("AS"):
        token = stream.peek()
        if token is not None and (token.is_identifier or token.type is TokenType.STRING):
            alias = stream.next().value.strip("'")
    else:
        token = stream.peek()
        if token is not None and token.is_identifier and token.upper not in _NOT_ALIASES:
            alias = stream.next().value
    return table, alias


def _table_aliases(tokens: list[Token]) -> tuple[str, dict[str, str]]:
    """
    Collect the tables referenced at the outer level of a statement.

    Returns:
        Tuple of (first FROM table, mapping of lowercased alias or table
        name to table name)
    """
    first_from = ""
    aliases: dict[str, str] = {}
    depth = 0
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token.is_punct("("):
            depth += 1
        elif token.is_punct(")"):
            depth -= 1
        elif depth == 0 and token.is_keyword("FROM", "JOIN", "UPDATE", "INTO") and not (
            index > 0 and tokens[index - 1].is_keyword("KEY")
        ):
            stream = _TokenStream(tokens, index + 1)
            stream.skip_keywords(_UPDATE_MODIFIERS if token.is_keyword("UPDATE") else frozenset())
            while True:
                reference = _table_reference(stream)
                if reference is None:
                    break
                table, alias = reference
                if token.is_keyword("FROM") and not first_from:
                    first_from = table
                aliases.setdefault(table.lower(), table)
                aliases.setdefault(table.split(".")[-1].lower(), table)
                if alias:
                    aliases[alias.lower()] = table
                # FROM a, b, c
                if not stream.accept_punct(","):
                    break
            index = max(stream.index, index + 1)
            continue
        index += 1
    return first_from, aliases


def _predicate_column(tokens: list[Token], equals: int) -> list[str] | None:
    """
    Return the column reference left of the ``=`` at ``equals``.

    The reference must be the whole left operand: preceded by the start of
    the clause, ``(``, or a boolean connective.
    """
    index = equals - 1
    if index < 0 or not tokens[index].is_identifier:
        return None
    parts = [tokens[index].value]
    while index >= 2 and tokens[index - 1].is_punct(".") and tokens[index - 2].is_identifier:
        index -= 2
        parts.insert(0, tokens[index].value)
    if index == 0:
        return parts
    leader = tokens[index - 1]
    if leader.is_punct("(") or leader.is_keyword(*_PREDICATE_LEADERS):
        return parts
    return None


def _where_clause(tokens: list[Token], fallback_table: str = "") -> WhereClause | None:
    """
    Locate the outer WHERE clause and its ``col = ?`` predicates.

    Unqualified columns resolve to ``fallback_table``, else to the first
    FROM table; qualified ones resolve through the FROM/JOIN aliases.
    """
    depth = 0
    where_index = -1
    for index, token in enumerate(tokens):
        if token.is_punct("("):
            depth += 1
        elif token.is_punct(")"):
            depth -= 1
        elif depth == 0 and token.is_keyword("WHERE"):
            where_index = index
            break
    if where_index < 0:
        return None

    first_from, aliases = _table_aliases(tokens)
    default_table = fallback_table or first_from

    start = count_placeholders(tokens[:where_index])
    clause: list[Token] = [tokens[where_index]]
    depth = 0
    index = where_index + 1
    while index < len(tokens):
        token = tokens[index]
        if token.is_punct(";") or (depth == 0 and token.is_keyword(*_WHERE_TERMINATORS)):
            break
        if token.is_punct(")") and depth == 0:
            break
        if token.is_punct("(") and index + 1 < len(tokens) and tokens[index + 1].is_keyword("SELECT"):
            # Subquery: keep its placeholders for counting, hide its predicates
            stream = _TokenStream(tokens, index)
            stream.skip_group()
            hidden = tokens[index:stream.index]
            clause.append(Token(TokenType.OPERATOR, "(subquery)", token.position))
            clause.extend(t for t in hidden if t.type is TokenType.PLACEHOLDER)
            clause.append(Token(TokenType.OPERATOR, "(/subquery)", token.position))
            index = stream.index
            continue
        if token.is_punct("("):
            depth += 1
        elif token.is_punct(")"):
            depth -= 1
        clause.append(token)
        index += 1

    predicates: list[WherePredicate] = []
    offset = 0
    for position, token in enumerate(clause):
        if token.type is not TokenType.PLACEHOLDER:
            continue
        if position >= 1 and clause[position - 1].is_punct("="):
            parts = _predicate_column(clause, position - 1)
            if parts:
                if len(parts) >= 2:
                    qualifier = parts[-2]
                    table = aliases.get(qualifier.lower(), qualifier)
                else:
                    table = default_table
                predicates.append(WherePredicate(offset, table, parts[-1]))
        offset += 1

    return WhereClause(start=start, placeholder_count=offset, predicates=tuple(predicates))


def _classify_insert(tokens: list[Token]) -> StatementShape:
    stream = _TokenStream(tokens, 1)
    stream.skip_keywords(_INSERT_MODIFIERS)
    stream.accept_keyword("INTO")
    parts = stream.qualified_name()
    if not parts:
        return StatementShape(StatementKind.INSERT)
    table = ".".join(parts)

    columns: list[str] = []
    token = stream.peek()
    if token is not None and token.is_punct("("):
        following = stream.peek(1)
        if following is not None and following.is_keyword("SELECT"):
            return StatementShape(StatementKind.INSERT_SELECT, table)
        parsed = _parse_column_list(stream)
        if parsed is None:
            return StatementShape(StatementKind.INSERT, table)
        columns = parsed

    token = stream.peek()
    if token is not None and (
        token.is_keyword("SELECT")
        or (token.is_punct("(") and stream.peek(1) is not None and stream.peek(1).is_keyword("SELECT"))
    ):
        return StatementShape(StatementKind.INSERT_SELECT, table)

    write_start = stream.placeholders_before()
    slots: list[str | None] | None = None
    if stream.accept_keyword("VALUES", "VALUE"):
        slots = _parse_values_rows(stream, columns)
    elif not columns and stream.accept_keyword("SET"):
        slots = _parse_assignments(stream, _SET_TERMINATORS)

    if slots is None:
        return StatementShape(StatementKind.INSERT, table)

    # MySQL 8 row alias: VALUES (...) AS new
    if stream.accept_keyword("AS"):
        stream.qualified_name()
        if stream.peek() is not None and stream.peek().is_punct("("):
            stream.skip_group()

    if stream.accept_keyword("ON"):
        if not (stream.accept_keyword("DUPLICATE") and stream.accept_keyword("KEY")
                and stream.accept_keyword("UPDATE")):
            return StatementShape(StatementKind.INSERT, table)
        duplicate_slots = _parse_assignments(stream, frozenset())
        if duplicate_slots is None:
            return StatementShape(StatementKind.INSERT, table)
        slots.extend(duplicate_slots)

    return StatementShape(
        StatementKind.INSERT,
        target_table=table,
        assigned_columns=tuple(slots),
        write_start=write_start,
    )


def _classify_update(tokens: list[Token]) -> StatementShape:
    stream = _TokenStream(tokens, 1)
    stream.skip_keywords(_UPDATE_MODIFIERS)
    reference = _table_reference(stream)
    if reference is None:
        return StatementShape(StatementKind.UPDATE, where=_where_clause(tokens))
    table = reference[0]
    where = _where_clause(tokens, table)

    write_start = stream.placeholders_before()
    if not stream.accept_keyword("SET"):
        # Multi-table UPDATE ... JOIN: only the WHERE clause is understood
        return StatementShape(StatementKind.UPDATE, target_table=table, where=where)

    slots = _parse_assignments(stream, _SET_TERMINATORS)
    if slots is None:
        return StatementShape(StatementKind.UPDATE, target_table=table, where=where)

    return StatementShape(
        StatementKind.UPDATE,
        target_table=table,
        assigned_columns=tuple(slots),
        write_start=write_start,
        where=where,
    )


def _classify_delete(tokens: list[Token]) -> StatementShape:
    stream = _TokenStream(tokens, 1)
    stream.skip_keywords(_DELETE_MODIFIERS)
    table = ""
    if stream.accept_keyword("FROM"):
        reference = _table_reference(stream)
        if reference is not None:
            table = reference[0]
    return StatementShape(StatementKind.DELETE, target_table=table, where=_where_clause(tokens, table))


def classify(sql: str) -> StatementShape:
    """
    Classify a SQL statement.

    Never raises: statements that cannot be understood come back as a
    shape whose ``is_empty`` is true, and callers pass their values
    through unchanged.

    Args:
        sql: The SQL statement

    Returns:
        The inferred StatementShape
    """
    tokens = tokenize(sql)
    if not tokens:
        return StatementShape(StatementKind.OTHER)

    first = tokens[0]
    if first.is_keyword("SELECT", "SHOW"):
        first_from, _ = _table_aliases(tokens)
        return StatementShape(StatementKind.SELECT, target_table=first_from, where=_where_clause(tokens))
    if first.is_keyword("INSERT"):
        shape = _classify_insert(tokens)
    elif first.is_keyword("UPDATE"):
        shape = _classify_update(tokens)
    elif first.is_keyword("DELETE"):
        shape = _classify_delete(tokens)
    else:
        return StatementShape(StatementKind.OTHER)

    if shape.is_write and shape.is_empty:
        logger.debug("No assigned columns recognised in %s statement; values pass through", shape.kind.value)
    return shape


def find_where_clause(sql: str, fallback_table: str = "") -> WhereClause | None:
    """
    Locate the WHERE clause of a statement.

    Args:
        sql: The SQL statement
        fallback_table: Table for unqualified columns (UPDATE/DELETE target)

    Returns:
        The WhereClause, or None if the statement has no outer WHERE
    """
    return _where_clause(tokenize(sql), fallback_table)


def parse_insert_select(sql: str) -> InsertSelectPlan | None:
    """
    Parse ``INSERT INTO t (cols) SELECT ...``.

    Args:
        sql: The SQL statement

    Returns:
        The InsertSelectPlan, or None for any other form (no explicit
        column list, parenthesized SELECT, ON DUPLICATE KEY UPDATE)
    """
    tokens = tokenize(sql)
    if not tokens or not tokens[0].is_keyword("INSERT"):
        return None

    stream = _TokenStream(tokens, 1)
    stream.skip_keywords(_INSERT_MODIFIERS)
    if not stream.accept_keyword("INTO"):
        return None
    parts = stream.qualified_name()
    if not parts:
        return None
    columns = _parse_column_list(stream)
    if not columns:
        return None
    select = stream.peek()
    if select is None or not select.is_keyword("SELECT"):
        return None

    # The SELECT must run on its own; a trailing upsert clause cannot be emulated
    depth = 0
    for token in tokens[stream.index:]:
        if token.is_punct("("):
            depth += 1
        elif token.is_punct(")"):
            depth -= 1
        elif depth == 0 and token.is_keyword("DUPLICATE"):
            return None

    select_sql = sql[select.position:].strip().rstrip(";").rstrip()
    return InsertSelectPlan(table=".".join(parts), columns=tuple(columns), select_sql=select_sql)


def infer_select_columns(sql: str) -> SelectProjection:
    """
    Infer the source column behind each SELECT output.

    Handles ``[t.]col [[AS] alias]`` items, ``*`` and ``t.*``. Anything
    else (expressions, functions, subqueries) is left unmapped.

    Args:
        sql: A SELECT statement

    Returns:
        The SelectProjection for the statement
    """
    projection = SelectProjection()
    tokens = tokenize(sql)
    if not tokens or not tokens[0].is_keyword("SELECT"):
        return projection

    first_from, aliases = _table_aliases(tokens)
    tables = set(aliases.values())
    single_table = first_from if len(tables) == 1 else ""

    stream = _TokenStream(tokens, 1)
    stream.skip_keywords(_SELECT_MODIFIERS)
    while not stream.at_end:
        item = stream.expression(frozenset({"FROM", "INTO"}))
        _project_item(item, aliases, single_table, projection)
        if not stream.accept_punct(","):
            break
    return projection


def _project_item(
    item: list[Token],
    aliases: dict[str, str],
    single_table: str,
    projection: SelectProjection,
) -> None:
    """Add one SELECT list item to the projection."""
    if not item:
        return

    # * and t.*
    if item[-1].type is TokenType.OPERATOR and item[-1].value == "*":
        if len(item) == 1:
            projection.add_wildcard(single_table)
        elif len(item) == 3 and item[0].is_identifier and item[1].is_punct("."):
            projection.add_wildcard(aliases.get(item[0].value.lower(), item[0].value))
        return

    stream = _TokenStream(item)
    parts = stream.qualified_name()
    if not parts or parts[0].upper() in ("CASE", "DISTINCT"):
        return
    column = parts[-1]
    if len(parts) >= 2:
        table = aliases.get(parts[-2].lower(), parts[-2])
    else:
        table = single_table

    output = column
    if stream.accept_keyword("AS"):
        token = stream.next()
        if token is None:
            return
        output = token.value.strip("'") if token.type is TokenType.STRING else token.value
    elif stream.peek() is not None and stream.peek().is_identifier:
        output = stream.next().value

    # Anything left over means the item was an expression
    if not stream.at_end:
        return
    projection.columns[output] = ColumnMeta(output, table, column)
