"""Typed models for registered libraries."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

RESERVED_NAMES = frozenset({"libraries.json", "config.toml", "audit.jsonl", "audit.jsonl.1"})


@dataclass(slots=True, frozen=True)
class LibraryEntry:
    """One registered library: a named filesystem root."""

    name: str
    root: Path


@dataclass(slots=True, frozen=True)
class IndexRequest:
    """Name, root and overwrite consent for one index build.

    `create-index` builds this from its arguments, `update` from the registry
    entry for the current directory with overwrite always allowed.
    """

    name: str
    root: Path
    force: bool

    @classmethod
    def for_create(
        cls, name: str, root: str | Path | None, force: bool, cwd: Path
    ) -> IndexRequest:
        validate_library_name(name)
        base = Path(root).expanduser() if root is not None else cwd
        if not base.is_absolute():
            base = cwd / base
        return cls(name=name, root=base.resolve(), force=force)

    @classmethod
    def for_update(cls, entry: LibraryEntry) -> IndexRequest:
        return cls(name=entry.name, root=entry.root, force=True)


def validate_library_name(name: str) -> None:
    """Reject names that cannot serve as a single storage directory."""
    if not name or not name.strip():
        raise ValueError("Library name must not be empty.")
    if "/" in name or "\\" in name:
        raise ValueError(f"Library name {name!r} must not contain path separators.")
    if name in {".", ".."}:
        raise ValueError(f"Library name {name!r} is not a valid directory name.")
    if name in RESERVED_NAMES:
        raise ValueError(f"Library name {name!r} is reserved.")
