"""Persistent root -> name mapping for registered libraries."""

from __future__ import annotations

import json
import os
from pathlib import Path

from shelf_search.errors import AlreadyRegisteredError, LibraryNotFoundError, RegistryParseError
from shelf_search.library.models import LibraryEntry, validate_library_name

REGISTRY_FILE_NAME = "libraries.json"


class LibraryRegistry:
    """In-memory view of libraries.json, rewritten whole on every change."""

    def __init__(self, path: Path, mapping: dict[str, str] | None = None) -> None:
        self._path = path
        self._mapping: dict[str, str] = dict(mapping or {})

    @property
    def path(self) -> Path:
        return self._path

    @classmethod
    def load(cls, storage_path: Path) -> LibraryRegistry:
        """Load the registry; a missing file is an empty registry."""
        path = storage_path
        if path.name != REGISTRY_FILE_NAME:
            path = path / REGISTRY_FILE_NAME
        if not path.exists():
            return cls(path)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as error:
            raise RegistryParseError(str(path), str(error)) from error
        return cls(path, _parse_mapping(str(path), payload))

    def resolve_name(self, explicit: str | None, cwd: Path) -> str:
        """Return the explicit index name, or the library registered at cwd."""
        if explicit is not None:
            validate_library_name(explicit)
            return explicit
        return self.lookup(cwd)

    def lookup(self, root: Path) -> str:
        key = _root_key(root)
        name = self._mapping.get(key)
        if name is None:
            raise LibraryNotFoundError(key)
        return name

    def entry_for(self, root: Path) -> LibraryEntry:
        key = _root_key(root)
        return LibraryEntry(name=self.lookup(root), root=Path(key))

    def register(self, root: Path, name: str, force: bool) -> None:
        """Map root to name, dropping any other root that holds the same name."""
        key = _root_key(root)
        for existing_root, existing_name in self._mapping.items():
            if existing_name == name and existing_root != key and not force:
                raise AlreadyRegisteredError(name, existing_root)

        mapping = {
            existing_root: existing_name
            for existing_root, existing_name in self._mapping.items()
            if existing_name != name
        }
        mapping[key] = name
        self._write(mapping)
        self._mapping = mapping

    def entries(self) -> list[LibraryEntry]:
        """Return registered libraries sorted by name."""
        ordered = sorted(self._mapping.items(), key=lambda item: (item[1], item[0]))
        return [LibraryEntry(name=name, root=Path(root)) for root, name in ordered]

    def _write(self, mapping: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump({"mapping": mapping}, handle, indent=2, sort_keys=True)
            handle.write("\n")
            handle.flush()
            os.fsync(handle.fileno())
        tmp.replace(self._path)


def _root_key(root: Path) -> str:
    return str(root.expanduser().resolve())


def _parse_mapping(path: str, payload: object) -> dict[str, str]:
    if not isinstance(payload, dict):
        raise RegistryParseError(path, "top-level value must be an object")
    mapping = payload.get("mapping")
    if not isinstance(mapping, dict):
        raise RegistryParseError(path, "field 'mapping' must be an object")
    output: dict[str, str] = {}
    for root, name in mapping.items():
        if not isinstance(name, str):
            raise RegistryParseError(path, f"library name for {root} must be a string")
        output[root] = name
    return output
