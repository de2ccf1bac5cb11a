from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from shelf_search.config import default_config
from shelf_search.index import DiscoveryProfile, has_allowed_extension, iter_eligible_files


def _write(path: Path, text: str = "x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_only_included_extensions_are_yielded(tmp_path: Path) -> None:
    root = tmp_path / "lib"
    _write(root / "a.txt")
    _write(root / "b.html")
    _write(root / "c.htm")
    _write(root / "d.pdf")
    _write(root / "README")
    config = default_config(tmp_path / "data").index
    profile = DiscoveryProfile()

    found = [path.name for path in iter_eligible_files(root, config, profile=profile)]

    assert found == ["a.txt", "b.html", "c.htm"]
    assert profile.total_candidates == 5
    assert profile.excluded_by_extension == 2


def test_walk_order_is_sorted_and_files_precede_subdirectories(tmp_path: Path) -> None:
    root = tmp_path / "lib"
    _write(root / "z.txt")
    _write(root / "b" / "inner.txt")
    _write(root / "a" / "deep" / "leaf.txt")
    _write(root / "a" / "top.txt")
    config = default_config(tmp_path / "data").index

    resolved = root.resolve()
    found = [path.relative_to(resolved).as_posix() for path in iter_eligible_files(root, config)]

    assert found == ["z.txt", "a/top.txt", "a/deep/leaf.txt", "b/inner.txt"]


def test_uppercase_extensions_match_unless_case_sensitive(tmp_path: Path) -> None:
    root = tmp_path / "lib"
    _write(root / "LOUD.TXT")
    config = default_config(tmp_path / "data").index

    assert [path.name for path in iter_eligible_files(root, config)] == ["LOUD.TXT"]

    strict = dataclasses.replace(config, case_sensitive_extensions=True)
    assert list(iter_eligible_files(root, strict)) == []


def test_exclude_globs_prune_directories_and_files(tmp_path: Path) -> None:
    root = tmp_path / "lib"
    _write(root / "keep.txt")
    _write(root / "drafts" / "skip.txt")
    _write(root / "notes.tmp.txt")
    config = dataclasses.replace(
        default_config(tmp_path / "data").index,
        exclude_globs=("**/drafts/**", "*.tmp.txt"),
    )
    profile = DiscoveryProfile()

    found = [path.name for path in iter_eligible_files(root, config, profile=profile)]

    assert found == ["keep.txt"]
    assert profile.excluded_by_glob == 1


def test_skip_dirs_are_not_walked(tmp_path: Path) -> None:
    root = tmp_path / "lib"
    _write(root / "keep.txt")
    _write(root / "storage" / "docs" / "meta.txt")
    config = default_config(tmp_path / "data").index

    found = [
        path.name
        for path in iter_eligible_files(root, config, skip_dirs=(root / "storage",))
    ]

    assert found == ["keep.txt"]


def test_non_directory_root_raises(tmp_path: Path) -> None:
    target = _write(tmp_path / "file.txt")
    config = default_config(tmp_path / "data").index

    with pytest.raises(NotADirectoryError):
        list(iter_eligible_files(target, config))


def test_has_allowed_extension_requires_a_suffix() -> None:
    assert has_allowed_extension(Path("a.TXT"), (".txt",))
    assert not has_allowed_extension(Path("a.TXT"), (".txt",), case_sensitive=True)
    assert not has_allowed_extension(Path("Makefile"), (".txt",))
