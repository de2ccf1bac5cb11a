"""SQLite FTS5 index engine: schema, batched writer, query parsing and lookup."""

from __future__ import annotations

import json
import re
import sqlite3
from collections.abc import Sequence
from contextlib import closing
from dataclasses import dataclass
from pathlib import Path

from shelf_search.errors import (
    DocumentNotFoundError,
    EngineError,
    IndexNotFoundError,
    InvalidQueryError,
)
from shelf_search.logging import utc_timestamp

INDEX_SCHEMA_VERSION = 1
INDEX_DB_NAME = "index.sqlite3"
META_FILE_NAME = "meta.json"
FTS_TOKENIZER = "unicode61"

_FIELD_NAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")
QUERY_OPERATORS = frozenset({"AND", "OR", "NOT"})
_QUERY_TOKEN_PATTERN = re.compile(r'"[^"]*"\*?|[()]|[^\s()"]+|"')
_BAREWORD_PATTERN = re.compile(r"\w+\*?")
_WORD_CHAR_PATTERN = re.compile(r"\w")


@dataclass(slots=True, frozen=True)
class FieldSpec:
    """One schema field; stored fields are retrievable, tokenized fields searchable."""

    name: str
    stored: bool
    tokenized: bool


@dataclass(slots=True, frozen=True)
class Schema:
    """Ordered field definitions for one index."""

    fields: tuple[FieldSpec, ...]

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for spec in self.fields:
            if not _FIELD_NAME_PATTERN.match(spec.name) or spec.name in {"rowid", "rank"}:
                raise ValueError(f"Invalid schema field name: {spec.name!r}")
            if spec.name in seen:
                raise ValueError(f"Duplicate schema field name: {spec.name!r}")
            if not spec.stored and not spec.tokenized:
                raise ValueError(f"Schema field {spec.name!r} must be stored or tokenized.")
            seen.add(spec.name)
        if not self.tokenized_fields:
            raise ValueError("Schema needs at least one tokenized field.")

    @property
    def stored_fields(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.fields if spec.stored)

    @property
    def tokenized_fields(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.fields if spec.tokenized)

    def to_dict(self) -> list[dict[str, object]]:
        return [
            {"name": spec.name, "stored": spec.stored, "tokenized": spec.tokenized}
            for spec in self.fields
        ]

    @classmethod
    def from_dict(cls, payload: object) -> Schema:
        if not isinstance(payload, list):
            raise EngineError("index schema must be a list of fields")
        fields: list[FieldSpec] = []
        for item in payload:
            if not isinstance(item, dict):
                raise EngineError("index schema field must be an object")
            name = item.get("name")
            stored = item.get("stored")
            tokenized = item.get("tokenized")
            if not isinstance(name, str) or not isinstance(stored, bool):
                raise EngineError("index schema field is malformed")
            if not isinstance(tokenized, bool):
                raise EngineError("index schema field is malformed")
            fields.append(FieldSpec(name=name, stored=stored, tokenized=tokenized))
        try:
            return cls(fields=tuple(fields))
        except ValueError as error:
            raise EngineError(str(error)) from error


@dataclass(slots=True, frozen=True)
class Query:
    """A validated FTS5 match expression."""

    text: str
    expression: str


@dataclass(slots=True, frozen=True)
class ScoredDocument:
    """One ranked hit; higher score is more relevant."""

    score: float
    doc_id: int


class IndexEngine:
    """Handle on one index directory."""

    def __init__(self, directory: Path, schema: Schema) -> None:
        self._directory = directory
        self._schema = schema

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def db_path(self) -> Path:
        return self._directory / INDEX_DB_NAME

    @property
    def meta_path(self) -> Path:
        return self._directory / META_FILE_NAME

    @classmethod
    def create_in_dir(cls, directory: Path, schema: Schema) -> IndexEngine:
        """Create a fresh index; the directory must not already hold one."""
        engine = cls(directory, schema)
        if engine.meta_path.exists() or engine.db_path.exists():
            raise EngineError(f"index files already present in {directory}")
        directory.mkdir(parents=True, exist_ok=True)
        try:
            with closing(sqlite3.connect(engine.db_path)) as connection:
                connection.executescript(_schema_sql(schema))
                connection.commit()
        except sqlite3.Error as error:
            raise EngineError(f"unable to create index in {directory}: {error}") from error
        engine.write_meta(committed_documents=0)
        return engine

    @classmethod
    def open(cls, directory: Path, name: str | None = None) -> IndexEngine:
        """Open an existing index, failing when metadata or database is missing."""
        label = name or directory.name
        meta_path = directory / META_FILE_NAME
        if not directory.is_dir() or not meta_path.exists():
            raise IndexNotFoundError(label, str(directory))
        if not (directory / INDEX_DB_NAME).exists():
            raise IndexNotFoundError(label, str(directory))
        try:
            with meta_path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except json.JSONDecodeError as error:
            raise EngineError(f"corrupt index metadata in {directory}: {error}") from error
        if not isinstance(payload, dict):
            raise EngineError(f"corrupt index metadata in {directory}")
        version = payload.get("schema_version")
        if version != INDEX_SCHEMA_VERSION:
            raise EngineError(
                f"unsupported index schema version {version!r} in {directory}; "
                "rebuild the index with --force"
            )
        return cls(directory, Schema.from_dict(payload.get("fields")))

    def read_meta(self) -> dict[str, object]:
        with self.meta_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return payload if isinstance(payload, dict) else {}

    def writer(self, memory_budget_bytes: int) -> IndexWriter:
        return IndexWriter(self, memory_budget_bytes)

    def searcher(self) -> Searcher:
        return Searcher(self)

    def write_meta(self, committed_documents: int) -> None:
        payload = {
            "schema_version": INDEX_SCHEMA_VERSION,
            "fields": self._schema.to_dict(),
            "committed_documents": committed_documents,
            "last_commit_timestamp": utc_timestamp(),
        }
        tmp = self.meta_path.with_suffix(self.meta_path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, sort_keys=True)
            handle.write("\n")
        tmp.replace(self.meta_path)


class IndexWriter:
    """Buffers added documents in an open transaction until commit()."""

    def __init__(self, engine: IndexEngine, memory_budget_bytes: int) -> None:
        self._engine = engine
        self._schema = engine.schema
        self._connection = sqlite3.connect(engine.db_path)
        self._connection.execute(f"PRAGMA cache_size = -{max(1, memory_budget_bytes // 1024)}")
        self._pending = 0
        self._committed = 0
        stored = self._schema.stored_fields
        tokenized = self._schema.tokenized_fields
        self._stored_sql = (
            f"INSERT INTO documents ({', '.join(stored)}) "
            f"VALUES ({', '.join('?' for _ in stored)})"
            if stored
            else "INSERT INTO documents DEFAULT VALUES"
        )
        self._tokenized_sql = (
            f"INSERT INTO documents_fts (rowid, {', '.join(tokenized)}) "
            f"VALUES (?, {', '.join('?' for _ in tokenized)})"
        )

    @property
    def pending(self) -> int:
        return self._pending

    @property
    def committed(self) -> int:
        return self._committed

    def add_document(self, document: dict[str, str]) -> None:
        unknown = set(document) - {spec.name for spec in self._schema.fields}
        if unknown:
            raise EngineError(f"unknown document fields: {', '.join(sorted(unknown))}")
        try:
            cursor = self._connection.execute(
                self._stored_sql,
                [document.get(name, "") for name in self._schema.stored_fields],
            )
            self._connection.execute(
                self._tokenized_sql,
                [
                    cursor.lastrowid,
                    *(document.get(name, "") for name in self._schema.tokenized_fields),
                ],
            )
        except sqlite3.Error as error:
            raise EngineError(f"unable to add document: {error}") from error
        self._pending += 1

    def commit(self) -> int:
        """Flush buffered documents to disk and return the committed total."""
        try:
            self._connection.commit()
        except sqlite3.Error as error:
            raise EngineError(f"index commit failed: {error}") from error
        self._committed += self._pending
        self._pending = 0
        self._engine.write_meta(committed_documents=self._committed)
        return self._committed

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> IndexWriter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class Searcher:
    """Read-only query access to one index."""

    def __init__(self, engine: IndexEngine) -> None:
        self._engine = engine
        self._schema = engine.schema
        try:
            uri = f"{engine.db_path.resolve().as_uri()}?mode=ro"
            self._connection = sqlite3.connect(uri, uri=True)
        except sqlite3.Error as error:
            raise EngineError(f"unable to open index {engine.directory}: {error}") from error

    def parse_query(self, text: str, fields: Sequence[str]) -> Query:
        """Translate and validate query text against the given tokenized fields."""
        if not text.strip():
            raise InvalidQueryError(text, "query is empty")
        unknown = [name for name in fields if name not in self._schema.tokenized_fields]
        if unknown or not fields:
            raise EngineError(f"cannot query non-tokenized fields: {', '.join(unknown)}")
        expression = build_match_expression(text)
        if tuple(fields) != self._schema.tokenized_fields:
            expression = f"{{{' '.join(fields)}}} : ({expression})"
        try:
            self._connection.execute(
                "SELECT rowid FROM documents_fts WHERE documents_fts MATCH ? LIMIT 1",
                (expression,),
            ).fetchone()
        except sqlite3.OperationalError as error:
            if _is_storage_error(error):
                message = f"unable to read index {self._engine.directory}: {error}"
                raise EngineError(message) from error
            raise InvalidQueryError(text, str(error)) from error
        except sqlite3.Error as error:
            raise EngineError(f"query validation failed: {error}") from error
        return Query(text=text, expression=expression)

    def search(self, query: Query, limit: int, offset: int = 0) -> list[ScoredDocument]:
        """Return at most `limit` hits after skipping `offset`, best first."""
        if limit < 1:
            return []
        try:
            rows = self._connection.execute(
                "SELECT rowid, rank FROM documents_fts WHERE documents_fts MATCH ? "
                "ORDER BY rank, rowid LIMIT ? OFFSET ?",
                (query.expression, limit, max(0, offset)),
            ).fetchall()
        except sqlite3.Error as error:
            raise EngineError(f"search failed: {error}") from error
        return [ScoredDocument(score=-float(rank), doc_id=int(rowid)) for rowid, rank in rows]

    def doc(self, doc_id: int) -> dict[str, str]:
        """Return stored fields for a document id."""
        stored = self._schema.stored_fields
        if not stored:
            return {}
        try:
            row = self._connection.execute(
                f"SELECT {', '.join(stored)} FROM documents WHERE id = ?",
                (doc_id,),
            ).fetchone()
        except sqlite3.Error as error:
            raise EngineError(f"document lookup failed: {error}") from error
        if row is None:
            raise DocumentNotFoundError(doc_id)
        return {name: value for name, value in zip(stored, row, strict=True) if value is not None}

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> Searcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def build_match_expression(text: str) -> str:
    """Translate user query text into an FTS5 match expression.

    Terms without an explicit operator between them are alternatives (OR).
    Uppercase AND, OR and NOT, parentheses, quoted phrases and a trailing `*`
    prefix keep their FTS5 meaning. A term containing punctuation is matched as
    a phrase of its tokens, so `e-mail` finds "e mail" and `C++` finds "c".
    """
    parts: list[str] = []
    after_operand = False
    for token in _QUERY_TOKEN_PATTERN.findall(text):
        if token == '"':
            raise InvalidQueryError(text, "unterminated phrase")
        if token in QUERY_OPERATORS or token == ")":
            parts.append(token)
            after_operand = token == ")"
            continue
        term = token if token == "(" else _term_expression(token)
        if term is None:
            continue
        if after_operand:
            parts.append("OR")
        parts.append(term)
        after_operand = term != "("
    if not parts:
        raise InvalidQueryError(text, "query has no searchable terms")
    return " ".join(parts)


def _term_expression(token: str) -> str | None:
    if not _WORD_CHAR_PATTERN.search(token):
        return None
    if token.startswith('"'):
        return token
    if _BAREWORD_PATTERN.fullmatch(token) and token != "NEAR":
        return token
    if token.endswith("*"):
        return f'"{token[:-1]}"*'
    return f'"{token}"'


def _schema_sql(schema: Schema) -> str:
    stored_columns = "".join(f", {name} TEXT" for name in schema.stored_fields)
    tokenized_columns = ", ".join(schema.tokenized_fields)
    return (
        f"CREATE TABLE documents (id INTEGER PRIMARY KEY{stored_columns});\n"
        f"CREATE VIRTUAL TABLE documents_fts USING fts5("
        f"{tokenized_columns}, content='', tokenize='{FTS_TOKENIZER}');\n"
    )


def _is_storage_error(error: sqlite3.OperationalError) -> bool:
    message = str(error)
    return message.startswith(("no such table", "unable to open", "disk I/O", "database is locked"))
