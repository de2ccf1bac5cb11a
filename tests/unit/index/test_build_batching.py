from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from shelf_search.config import IndexConfig, default_config
from shelf_search.errors import IndexExistsError
from shelf_search.index import META_FILE_NAME, IndexEngine, build_index
from shelf_search.library import IndexRequest


def _library(tmp_path: Path, count: int) -> Path:
    root = tmp_path / "lib"
    root.mkdir()
    for number in range(count):
        (root / f"doc{number}.txt").write_text(f"document number {number}", encoding="utf-8")
    return root


def _config(tmp_path: Path, **changes: object) -> IndexConfig:
    return dataclasses.replace(default_config(tmp_path / "data").index, **changes)


def test_batches_commit_every_batch_size_documents(tmp_path: Path) -> None:
    root = _library(tmp_path, 5)
    storage = tmp_path / "data"
    request = IndexRequest(name="lib", root=root.resolve(), force=False)

    report = build_index(storage, request, _config(tmp_path, batch_size=2))

    assert report.indexed == 5
    assert report.skipped == 0
    assert report.commits == 3
    engine = IndexEngine.open(storage / "lib")
    assert engine.read_meta()["committed_documents"] == 5


def test_existing_index_without_force_is_left_untouched(tmp_path: Path) -> None:
    root = _library(tmp_path, 1)
    storage = tmp_path / "data"
    request = IndexRequest(name="lib", root=root.resolve(), force=False)
    build_index(storage, request, _config(tmp_path))
    sentinel = storage / "lib" / "sentinel"
    sentinel.write_text("keep", encoding="utf-8")

    with pytest.raises(IndexExistsError):
        build_index(storage, request, _config(tmp_path))

    assert sentinel.read_text(encoding="utf-8") == "keep"


def test_force_rebuild_replaces_index_directory(tmp_path: Path) -> None:
    root = _library(tmp_path, 2)
    storage = tmp_path / "data"
    build_index(storage, IndexRequest("lib", root.resolve(), False), _config(tmp_path))
    sentinel = storage / "lib" / "sentinel"
    sentinel.write_text("stale", encoding="utf-8")

    report = build_index(storage, IndexRequest("lib", root.resolve(), True), _config(tmp_path))

    assert report.indexed == 2
    assert not sentinel.exists()
    assert (storage / "lib" / META_FILE_NAME).exists()


def test_directory_without_metadata_is_replaced_without_force(tmp_path: Path) -> None:
    root = _library(tmp_path, 1)
    storage = tmp_path / "data"
    leftover = storage / "lib" / "leftover"
    leftover.parent.mkdir(parents=True)
    leftover.write_text("partial", encoding="utf-8")

    build_index(storage, IndexRequest("lib", root.resolve(), False), _config(tmp_path))

    assert not leftover.exists()


def test_unreadable_file_is_skipped_by_default(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    from shelf_search.index import builder

    root = _library(tmp_path, 3)
    real_extract = builder.extract_text

    def flaky_extract(path: Path, *args: object) -> str:
        if path.name == "doc1.txt":
            raise PermissionError(f"denied: {path}")
        return real_extract(path, *args)

    monkeypatch.setattr(builder, "extract_text", flaky_extract)

    report = build_index(
        tmp_path / "data", IndexRequest("lib", root.resolve(), False), _config(tmp_path)
    )

    assert report.indexed == 2
    assert report.skipped == 1


def test_unreadable_file_aborts_when_configured(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    from shelf_search.index import builder

    root = _library(tmp_path, 2)

    def broken_extract(path: Path, *args: object) -> str:
        raise PermissionError(f"denied: {path}")

    monkeypatch.setattr(builder, "extract_text", broken_extract)

    with pytest.raises(PermissionError):
        build_index(
            tmp_path / "data",
            IndexRequest("lib", root.resolve(), False),
            _config(tmp_path, on_extract_error="abort"),
        )


def test_missing_root_fails_before_touching_existing_index(tmp_path: Path) -> None:
    root = _library(tmp_path, 1)
    storage = tmp_path / "data"
    build_index(storage, IndexRequest("lib", root.resolve(), False), _config(tmp_path))

    with pytest.raises(NotADirectoryError):
        build_index(
            storage, IndexRequest("lib", tmp_path / "missing", True), _config(tmp_path)
        )

    assert IndexEngine.open(storage / "lib").read_meta()["committed_documents"] == 1


def test_storage_directory_inside_root_is_not_indexed(tmp_path: Path) -> None:
    root = _library(tmp_path, 2)
    storage = root / ".shelf"
    storage.mkdir()
    (storage / "notes.txt").write_text("not a library document", encoding="utf-8")

    report = build_index(storage, IndexRequest("lib", root.resolve(), False), _config(tmp_path))

    assert report.indexed == 2
