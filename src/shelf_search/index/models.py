"""Typed models for index builds and searches."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from shelf_search.index.engine import FieldSpec, Schema

PATH_FIELD = "path"
TEXT_FIELD = "text"


@dataclass(slots=True, frozen=True)
class BuildReport:
    """Outcome of one full index build."""

    name: str
    root: Path
    indexed: int
    skipped: int
    commits: int

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "root": str(self.root),
            "indexed": self.indexed,
            "skipped": self.skipped,
            "commits": self.commits,
        }


@dataclass(slots=True, frozen=True)
class SearchRequest:
    """Query text plus pagination window."""

    text: str
    index_name: str | None
    skip: int
    take: int


def library_schema() -> Schema:
    """Stored, untokenized path plus tokenized, unstored text."""
    return Schema(
        fields=(
            FieldSpec(name=PATH_FIELD, stored=True, tokenized=False),
            FieldSpec(name=TEXT_FIELD, stored=False, tokenized=True),
        )
    )
