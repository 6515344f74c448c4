"""History queries: recent listing and prefix, fuzzy and FTS5 search."""

from __future__ import annotations

import re
import sqlite3

from histsearch.database import HISTORY_COLUMNS, history_count, row_to_record
from histsearch.history import Context, HistoryRecord
from histsearch.settings import FilterMode, SearchMode

# Upper bound on the records one query returns to the interactive view
HISTORY_LIMIT = 200

# Newest run of each distinct command. SQLite fills the bare columns from
# the row that produced MAX(timestamp).
_UNIQUE_SELECT = (
    "SELECT h.id, MAX(h.timestamp) AS timestamp, h.duration, h.exit, h.command,"
    " h.cwd, h.session, h.hostname FROM history h"
)
_PLAIN_SELECT = "SELECT " + ", ".join(f"h.{c.strip()}" for c in HISTORY_COLUMNS.split(",")) + (
    " FROM history h"
)


def filter_clause(filter_mode: FilterMode, context: Context) -> tuple[list[str], list[str]]:
    """SQL conditions restricting history to the filter mode's scope."""
    if filter_mode is FilterMode.HOST:
        return ["h.hostname = ?"], [context.hostname]
    if filter_mode is FilterMode.SESSION:
        return ["h.session = ?"], [context.session]
    if filter_mode is FilterMode.DIRECTORY:
        return ["h.cwd = ?"], [context.cwd]
    return [], []


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so text matches literally (with ESCAPE '\\')."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_fuzzy_conditions(query: str) -> tuple[list[str], list[str]]:
    """Build LIKE conditions for a fuzzy query, one per whitespace-separated term.

    Supports:
    - Subsequence: gco -> matches "git checkout"
    - Prefix: ^git -> command starts with "git"
    - Suffix: .py$ -> command ends with ".py"
    - Exact: 'push -> contains "push" literally
    - Negation: !sudo -> excludes commands matching the rest of the term
    """
    conditions: list[str] = []
    params: list[str] = []

    for term in query.split():
        negate = term.startswith("!") and len(term) > 1
        if negate:
            term = term[1:]

        if term.startswith("^") and len(term) > 1:
            pattern = escape_like(term[1:]) + "%"
        elif term.endswith("$") and len(term) > 1:
            pattern = "%" + escape_like(term[:-1])
        elif term.startswith("'") and len(term) > 1:
            pattern = "%" + escape_like(term[1:]) + "%"
        else:
            pattern = "%" + "%".join(escape_like(ch) for ch in term) + "%"

        op = "NOT LIKE" if negate else "LIKE"
        conditions.append(f"h.command {op} ? ESCAPE '\\'")
        params.append(pattern)

    return conditions, params


def build_fts_query(query: str) -> str:
    """Build an FTS5 query from user input.

    Supports:
    - Simple terms: git push -> "git"* AND "push"* (both required, prefix matched)
    - Phrases: "git push" -> "git push" (exact)
    - Boolean: AND, OR, NOT operators
    - Proximity: NEAR(a b, 5)
    - Grouping: (a OR b) AND c
    """
    query = query.strip()
    if not query:
        return ""

    query_upper = query.upper()

    # If query contains advanced syntax, pass through with normalized operators
    if (
        '"' in query
        or " AND " in query_upper
        or " OR " in query_upper
        or " NOT " in query_upper
        or "NEAR(" in query_upper
        or "(" in query
    ):
        result = re.sub(r"\bAND\b", "AND", query, flags=re.IGNORECASE)
        result = re.sub(r"\bOR\b", "OR", result, flags=re.IGNORECASE)
        result = re.sub(r"\bNOT\b", "NOT", result, flags=re.IGNORECASE)
        return re.sub(r"\bNEAR\s*\(", "NEAR(", result, flags=re.IGNORECASE)

    # Quote each term so shell punctuation (-, *, ., /) is tokenized, not parsed
    return " AND ".join('"' + term.replace('"', '""') + '"*' for term in query.split())


def _run(
    conn: sqlite3.Connection,
    select: str,
    conditions: list[str],
    params: list[str],
    limit: int | None,
    unique: bool,
) -> list[HistoryRecord]:
    sql = select
    if conditions:
        sql += " WHERE " + " AND ".join(conditions)
    if unique:
        sql += " GROUP BY h.command"
    sql += " ORDER BY timestamp DESC"

    args: list[str | int] = list(params)
    if limit is not None:
        sql += " LIMIT ?"
        args.append(limit)

    return [row_to_record(row) for row in conn.execute(sql, args)]


def list_history(
    conn: sqlite3.Connection,
    filter_mode: FilterMode,
    context: Context,
    limit: int | None = HISTORY_LIMIT,
    unique: bool = True,
) -> list[HistoryRecord]:
    """Most recent history in the filter mode's scope, newest first."""
    conditions, params = filter_clause(filter_mode, context)
    select = _UNIQUE_SELECT if unique else _PLAIN_SELECT
    return _run(conn, select, conditions, params, limit, unique)


def search_history(
    conn: sqlite3.Connection,
    search_mode: SearchMode,
    filter_mode: FilterMode,
    context: Context,
    query: str,
    limit: int | None = HISTORY_LIMIT,
) -> list[HistoryRecord]:
    """Search history for query text, newest distinct command first."""
    conditions, params = filter_clause(filter_mode, context)
    select = _UNIQUE_SELECT

    if search_mode is SearchMode.PREFIX:
        conditions.append("h.command LIKE ? ESCAPE '\\'")
        params.append(escape_like(query) + "%")
    elif search_mode is SearchMode.FULL_TEXT:
        fts_query = build_fts_query(query)
        if not fts_query:
            return list_history(conn, filter_mode, context, limit)
        select += " JOIN history_fts ON history_fts.rowid = h.rowid"
        conditions.insert(0, "history_fts MATCH ?")
        params.insert(0, fts_query)
    else:
        fuzzy_conditions, fuzzy_params = build_fuzzy_conditions(query)
        conditions.extend(fuzzy_conditions)
        params.extend(fuzzy_params)

    try:
        return _run(conn, select, conditions, params, limit, unique=True)
    except sqlite3.OperationalError:
        if search_mode is not SearchMode.FULL_TEXT:
            raise
        # Invalid FTS5 syntax typed by the user - no results
        return []


class HistoryDatabase:
    """Asynchronous storage interface consumed by the search session."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    async def list(
        self,
        filter_mode: FilterMode,
        context: Context,
        limit: int | None = HISTORY_LIMIT,
        unique: bool = True,
    ) -> list[HistoryRecord]:
        return list_history(self.conn, filter_mode, context, limit, unique)

    async def search(
        self,
        search_mode: SearchMode,
        filter_mode: FilterMode,
        context: Context,
        query: str,
        limit: int | None = HISTORY_LIMIT,
    ) -> list[HistoryRecord]:
        return search_history(self.conn, search_mode, filter_mode, context, query, limit)

    async def history_count(self) -> int:
        return history_count(self.conn)
