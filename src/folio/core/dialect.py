"""SQLite-to-PostgreSQL statement translation.

Application code is written against the SQLite calling convention:
``?`` positional placeholders, ``INSERT OR IGNORE`` and ``lastID`` after
an insert.  This module rewrites one statement at a time into the
PostgreSQL equivalent so it can run on asyncpg.

Manifesto:
    Callers keep writing the SQL they already have. Translation is pure
    and per-call: the same input always yields the same output, and the
    parameter sequence is never reordered, de-duplicated or mutated.

    - **Tokenized:** ``?`` inside quotes, dollar-quoted bodies and
      comments is left alone
    - **Keyword-classified:** statement kind comes from the leading
      keywords of code, never from a raw string prefix
    - **Descriptor-friendly:** callers can pass a :class:`Statement`
      with an explicit :class:`StatementKind` and skip classification

Architecture::

    Statement("INSERT OR IGNORE INTO t (a, b) VALUES (?, ?)", [1, 2])
        │
        ├─ strip trailing whitespace / ';'
        ├─ classify           → StatementKind.INSERT_OR_IGNORE
        ├─ OR IGNORE rewrite  → INSERT INTO ... ON CONFLICT DO NOTHING
        ├─ identifier rewrite → bookId → book_id     (optional)
        ├─ placeholders       → ?, ? → $1, $2
        └─ RETURNING id       → plain INSERT only, table not exempt
        │
        ▼
    TranslatedStatement(text, params, kind, returns_id)

Examples:
    >>> translate_placeholders("SELECT * FROM users WHERE id = ? AND name = '?'")
    "SELECT * FROM users WHERE id = $1 AND name = '?'"
    >>> classify("insert or ignore into t values (?)")
    <StatementKind.INSERT_OR_IGNORE: 'insert_or_ignore'>

Guardrails:
    ❌ DON'T: Build ``$n`` placeholders by hand in application code
    ✅ DO: Write ``?`` and let the translator number them

    ❌ DON'T: Use the JSONB ``?`` / ``?|`` / ``?&`` operators outside quotes
    ✅ DO: Use ``jsonb_exists()`` / ``jsonb_exists_any()`` instead

Tags:
    dialect, sql, translation, placeholders, postgresql, sqlite, folio
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from itertools import count
from typing import Any

from folio.core.logging import get_logger
from folio.core.protocols import Row
from folio.core.schema import TABLES_WITHOUT_ID

logger = get_logger(__name__)


class StatementKind(str, Enum):
    """What a statement does, as far as translation cares."""

    QUERY = "query"
    INSERT = "insert"
    INSERT_OR_IGNORE = "insert_or_ignore"
    BEGIN = "begin"
    COMMIT = "commit"
    ROLLBACK = "rollback"
    OTHER = "other"

    @property
    def is_transaction_control(self) -> bool:
        return self in (StatementKind.BEGIN, StatementKind.COMMIT, StatementKind.ROLLBACK)


@dataclass(frozen=True)
class Statement:
    """SQLite-flavoured statement descriptor.

    ``kind`` is optional; when set, the translator trusts it instead of
    inspecting ``text``.
    """

    text: str
    params: Sequence[Any] = ()
    kind: StatementKind | None = None


@dataclass(frozen=True)
class TranslatedStatement:
    """A statement ready for the PostgreSQL driver."""

    text: str
    params: list[Any] = field(default_factory=list)
    kind: StatementKind = StatementKind.OTHER
    returns_id: bool = False


class PostgreSQLDialect:
    """PostgreSQL fragments: ``$1`` placeholders, ``ON CONFLICT``, ``RETURNING``."""

    @property
    def name(self) -> str:
        return "postgresql"

    def placeholder(self, index: int) -> str:
        """Numbered placeholder for a 0-based parameter index."""
        return f"${index + 1}"

    def on_conflict_do_nothing(self) -> str:
        return "ON CONFLICT DO NOTHING"

    def returning(self, column: str) -> str:
        return f"RETURNING {column}"


# =========================================================================
# Tokenizer
# =========================================================================

_DOLLAR_TAG = re.compile(r"\$(?:[A-Za-z_][A-Za-z0-9_]*)?\$")
_WORD = re.compile(r"[A-Za-z_][A-Za-z0-9_$]*")
_QMARK = re.compile(r"\?")
_RETURNING = re.compile(r"\bRETURNING\b", re.IGNORECASE)
_ON_CONFLICT = re.compile(r"\bON\s+CONFLICT\b", re.IGNORECASE)
_TABLE_AFTER_INTO = re.compile(r'\s+((?:"(?:[^"]|"")+"|[A-Za-z_][\w$]*)(?:\.(?:"(?:[^"]|"")+"|[A-Za-z_][\w$]*))?)')

# A span is (is_code, text); non-code spans are literals and comments.
Span = tuple[bool, str]


def _scan_quoted(sql: str, start: int, quote: str, backslash: bool) -> int:
    """Index just past the quoted span opening at ``start``."""
    i = start + 1
    n = len(sql)
    while i < n:
        ch = sql[i]
        if backslash and ch == "\\":
            i += 2
            continue
        if ch == quote:
            if i + 1 < n and sql[i + 1] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    return n


def _continues_identifier(sql: str, i: int) -> bool:
    # Identifiers may contain '$', e.g. a$b$c
    return i > 0 and (sql[i - 1].isalnum() or sql[i - 1] in "_$")


def split_spans(sql: str) -> list[Span]:
    """Split ``sql`` into code spans and literal/comment spans.

    Literal spans are single-quoted strings (including ``E''`` escape
    strings), double-quoted identifiers, dollar-quoted bodies, ``--``
    line comments and ``/* */`` block comments. Unterminated spans run
    to the end of the text.
    """
    spans: list[Span] = []
    n = len(sql)
    i = start = 0
    while i < n:
        ch = sql[i]
        if ch in ("'", '"'):
            escape = (
                ch == "'"
                and i > 0
                and sql[i - 1] in "eE"
                and (i < 2 or not (sql[i - 2].isalnum() or sql[i - 2] == "_"))
            )
            end = _scan_quoted(sql, i, ch, backslash=escape)
        elif sql.startswith("--", i):
            newline = sql.find("\n", i)
            end = n if newline == -1 else newline + 1
        elif sql.startswith("/*", i):
            close = sql.find("*/", i + 2)
            end = n if close == -1 else close + 2
        elif ch == "$" and not _continues_identifier(sql, i) and (match := _DOLLAR_TAG.match(sql, i)):
            tag = match.group(0)
            close = sql.find(tag, match.end())
            end = n if close == -1 else close + len(tag)
        else:
            i += 1
            continue

        if i > start:
            spans.append((True, sql[start:i]))
        spans.append((False, sql[i:end]))
        i = start = end

    if start < n:
        spans.append((True, sql[start:]))
    return spans


def _join(spans: Sequence[Span]) -> str:
    return "".join(chunk for _, chunk in spans)


def _code(spans: Sequence[Span]) -> str:
    return " ".join(chunk for is_code, chunk in spans if is_code)


def _leading_words(spans: Sequence[Span], limit: int) -> list[tuple[str, int, int]]:
    """First ``limit`` keywords in code, with their offsets in the full text."""
    words: list[tuple[str, int, int]] = []
    offset = 0
    for is_code, chunk in spans:
        if is_code:
            for match in _WORD.finditer(chunk):
                words.append((match.group(0), offset + match.start(), offset + match.end()))
                if len(words) >= limit:
                    return words
        offset += len(chunk)
    return words


def _append_clause(spans: Sequence[Span], clause: str) -> str:
    text = _join(spans)
    if spans and not spans[-1][0] and spans[-1][1].startswith("--"):
        # A trailing line comment would swallow the clause.
        text += "\n"
    return f"{text} {clause}"


# =========================================================================
# Public helpers
# =========================================================================


def strip_statement(sql: str) -> str:
    """Trim surrounding whitespace and one trailing ``;``."""
    text = sql.strip()
    if text.endswith(";"):
        text = text[:-1].rstrip()
    return text


def translate_placeholders(sql: str, dialect: PostgreSQLDialect | None = None) -> str:
    """Replace each ``?`` in code with ``$1``, ``$2`` ... left to right."""
    return _number_placeholders(split_spans(sql), dialect or PostgreSQLDialect())


def _number_placeholders(spans: Sequence[Span], dialect: PostgreSQLDialect) -> str:
    counter = count()
    parts = []
    for is_code, chunk in spans:
        if is_code and "?" in chunk:
            chunk = _QMARK.sub(lambda _: dialect.placeholder(next(counter)), chunk)
        parts.append(chunk)
    return "".join(parts)


def classify(sql: str) -> StatementKind:
    """Classify a statement from its leading keywords."""
    return _classify_spans(split_spans(sql))


def _classify_spans(spans: Sequence[Span]) -> StatementKind:
    words = [word.upper() for word, _, _ in _leading_words(spans, 3)]
    if not words:
        return StatementKind.OTHER

    head, rest = words[0], words[1:]
    bare = not rest or (len(rest) == 1 and rest[0] in ("TRANSACTION", "WORK"))

    if head == "BEGIN" or (head == "START" and rest[:1] == ["TRANSACTION"]):
        return StatementKind.BEGIN
    if head in ("COMMIT", "END") and bare:
        return StatementKind.COMMIT
    if head in ("ROLLBACK", "ABORT") and bare:
        return StatementKind.ROLLBACK
    if head == "INSERT":
        if rest[:2] == ["OR", "IGNORE"]:
            return StatementKind.INSERT_OR_IGNORE
        return StatementKind.INSERT
    if head in ("SELECT", "WITH", "VALUES", "TABLE", "SHOW", "EXPLAIN"):
        return StatementKind.QUERY
    return StatementKind.OTHER


def _insert_target(text: str, spans: Sequence[Span]) -> str | None:
    """Unqualified, lower-cased table name of ``INSERT INTO <table>``."""
    for word, _, end in _leading_words(spans, 4):
        if word.upper() == "INTO":
            match = _TABLE_AFTER_INTO.match(text, end)
            if not match:
                return None
            name = match.group(1).rsplit(".", 1)[-1]
            if name.startswith('"'):
                return name[1:-1].replace('""', '"')
            return name.lower()
    return None


# =========================================================================
# Identifier aliases
# =========================================================================

# camelCase names used by older callers, stored snake_case in Postgres.
DEFAULT_IDENTIFIER_REWRITES: dict[str, str] = {
    "bookId": "book_id",
    "userId": "user_id",
    "publishYear": "publish_year",
    "coverKey": "cover_key",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "expiresAt": "expires_at",
}


class SqlTranslator:
    """Translate :class:`Statement` objects into :class:`TranslatedStatement`.

    Args:
        dialect: Target dialect (PostgreSQL).
        returning_exempt_tables: Tables without an ``id`` column; inserts
            into them never get ``RETURNING id``.
        rewrite_identifiers: Rewrite camelCase column names to snake_case
            in statements, and alias result rows back to camelCase.
        identifier_rewrites: Override the camelCase → snake_case map.
    """

    def __init__(
        self,
        dialect: PostgreSQLDialect | None = None,
        *,
        returning_exempt_tables: Sequence[str] = TABLES_WITHOUT_ID,
        rewrite_identifiers: bool = True,
        identifier_rewrites: Mapping[str, str] | None = None,
    ):
        self.dialect = dialect or PostgreSQLDialect()
        self.returning_exempt_tables = frozenset(t.lower() for t in returning_exempt_tables)
        self.rewrite_identifiers = rewrite_identifiers
        self._rewrites = dict(identifier_rewrites or DEFAULT_IDENTIFIER_REWRITES)
        self._row_aliases = {snake: camel for camel, snake in self._rewrites.items()}
        self._identifier_pattern = (
            re.compile(r"\b(" + "|".join(map(re.escape, self._rewrites)) + r")\b")
            if self._rewrites
            else None
        )

    def translate(self, statement: Statement) -> TranslatedStatement:
        text = strip_statement(statement.text)
        params = list(statement.params)
        spans = split_spans(text)
        kind = statement.kind or _classify_spans(spans)

        if kind.is_transaction_control:
            return TranslatedStatement(text=text, params=params, kind=kind)

        if kind is StatementKind.INSERT_OR_IGNORE:
            spans = self._drop_or_ignore(text, spans)
            if not _ON_CONFLICT.search(_code(spans)):
                spans = split_spans(_append_clause(spans, self.dialect.on_conflict_do_nothing()))

        if self.rewrite_identifiers and self._identifier_pattern is not None:
            spans = [
                (is_code, self._identifier_pattern.sub(lambda m: self._rewrites[m.group(1)], chunk))
                if is_code
                else (is_code, chunk)
                for is_code, chunk in spans
            ]

        returns_id = (
            kind is StatementKind.INSERT
            and not _RETURNING.search(_code(spans))
            and _insert_target(_join(spans), spans) not in self.returning_exempt_tables
        )

        text = _number_placeholders(spans, self.dialect)
        if returns_id:
            text = _append_clause(split_spans(text), self.dialect.returning("id"))

        logger.debug("statement_translated", kind=kind.value, text=text, params=len(params))
        return TranslatedStatement(text=text, params=params, kind=kind, returns_id=returns_id)

    def shape_row(self, row: Row) -> Row:
        """Expose camelCase aliases next to snake_case keys."""
        if not self.rewrite_identifiers:
            return row
        for snake, camel in self._row_aliases.items():
            if snake in row and camel not in row:
                row[camel] = row[snake]
        return row

    @staticmethod
    def _drop_or_ignore(text: str, spans: list[Span]) -> list[Span]:
        words = _leading_words(spans, 3)
        if [w.upper() for w, _, _ in words] != ["INSERT", "OR", "IGNORE"]:
            # Caller passed kind=INSERT_OR_IGNORE with plain INSERT text.
            return spans
        start, end = words[0][1], words[2][2]
        return split_spans(text[:start] + "INSERT" + text[end:])


__all__ = [
    "StatementKind",
    "Statement",
    "TranslatedStatement",
    "PostgreSQLDialect",
    "SqlTranslator",
    "DEFAULT_IDENTIFIER_REWRITES",
    "split_spans",
    "strip_statement",
    "translate_placeholders",
    "classify",
]
