"""Deterministic discovery of indexable files under a library root."""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from shelf_search.config import IndexConfig


@dataclass(slots=True)
class DiscoveryProfile:
    """Counters for one discovery pass."""

    total_candidates: int = 0
    excluded_by_glob: int = 0
    excluded_by_extension: int = 0
    unreadable_dirs: list[str] = field(default_factory=list)


def iter_eligible_files(
    root: Path,
    config: IndexConfig,
    skip_dirs: tuple[Path, ...] = (),
    profile: DiscoveryProfile | None = None,
) -> Iterator[Path]:
    """Yield regular files with an included extension, in sorted walk order."""
    root = root.resolve()
    if not root.is_dir():
        raise NotADirectoryError(f"library root is not a directory: {root}")
    stats = profile if profile is not None else DiscoveryProfile()
    skipped = {path.resolve() for path in skip_dirs}
    stack: list[Path] = [root]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as entries:
                ordered_entries = sorted(entries, key=lambda item: item.name)
        except OSError:
            stats.unreadable_dirs.append(str(current))
            continue
        subdirs: list[Path] = []
        for entry in ordered_entries:
            full_path = Path(entry.path)
            relative = full_path.relative_to(root).as_posix()
            if entry.is_dir(follow_symlinks=False):
                if full_path in skipped or should_exclude(f"{relative}/", config.exclude_globs):
                    continue
                subdirs.append(full_path)
                continue
            try:
                is_file = entry.is_file()
            except OSError:
                continue
            if not is_file:
                continue
            stats.total_candidates += 1
            if should_exclude(relative, config.exclude_globs):
                stats.excluded_by_glob += 1
                continue
            if not has_allowed_extension(
                full_path, config.include_extensions, config.case_sensitive_extensions
            ):
                stats.excluded_by_extension += 1
                continue
            yield full_path
        stack.extend(reversed(subdirs))


def should_exclude(relative_path: str, exclude_globs: tuple[str, ...]) -> bool:
    """Return True when a path matches configured ignore globs."""
    anchored = f"/{relative_path}"
    return any(
        fnmatch.fnmatch(relative_path, pattern) or fnmatch.fnmatch(anchored, pattern)
        for pattern in exclude_globs
    )


def has_allowed_extension(
    path: Path, extensions: tuple[str, ...], case_sensitive: bool = False
) -> bool:
    """Return True when the file extension is one of `extensions`."""
    suffix = path.suffix
    if not suffix:
        return False
    if case_sensitive:
        return suffix in extensions
    return suffix.lower() in {extension.lower() for extension in extensions}
