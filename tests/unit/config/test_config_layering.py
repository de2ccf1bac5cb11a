from __future__ import annotations

from pathlib import Path

import pytest

from shelf_search.config import (
    DATA_DIR_ENV,
    CliOverrides,
    default_config,
    default_data_dir,
    load_effective_config,
    merge_config,
)


def test_merge_order_defaults_file_then_cli(tmp_path: Path) -> None:
    base = default_config(tmp_path)
    payload = {
        "index": {"batch_size": 500, "on_extract_error": "abort", "writer_memory_mb": 32},
        "search": {"default_take": 25},
    }

    merged = merge_config(base, payload, CliOverrides(batch_size=7))

    assert merged.index.batch_size == 7
    assert merged.index.on_extract_error == "abort"
    assert merged.index.writer_memory_bytes == 32 * 1024 * 1024
    assert merged.search.default_take == 25
    assert merged.search.default_open_take == 1
    assert merged.search.open_delay_seconds == 0.5


def test_default_crawl_and_page_settings(tmp_path: Path) -> None:
    config = default_config(tmp_path)

    assert config.index.include_extensions == (".html", ".htm", ".txt")
    assert config.index.markup_extensions == (".htm", ".html")
    assert config.index.batch_size == 20_000
    assert config.index.case_sensitive_extensions is False
    assert config.search.default_take == 10


def test_extensions_gain_leading_dot(tmp_path: Path) -> None:
    merged = merge_config(
        default_config(tmp_path),
        {"index": {"include_extensions": ["md", ".txt"], "markup_extensions": []}},
        CliOverrides(),
    )

    assert merged.index.include_extensions == (".md", ".txt")
    assert merged.index.markup_extensions == ()


def test_config_file_is_read_from_data_dir(tmp_path: Path) -> None:
    (tmp_path / "config.toml").write_text(
        "[index]\nexclude_globs = [\"**/drafts/**\"]\n\n[search]\nopen_delay_ms = 0\n",
        encoding="utf-8",
    )

    config = load_effective_config(CliOverrides(data_dir=tmp_path))

    assert config.data_dir == tmp_path.resolve()
    assert config.index.exclude_globs == ("**/drafts/**",)
    assert config.search.open_delay_seconds == 0.0


def test_data_dir_env_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path / "custom"))

    assert default_data_dir() == tmp_path / "custom"


def test_xdg_data_home_used_on_linux(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(DATA_DIR_ENV, raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))
    monkeypatch.setattr("shelf_search.config.platform.system", lambda: "Linux")

    assert default_data_dir() == tmp_path / "xdg" / "shelf-search"


def test_macos_uses_application_support(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(DATA_DIR_ENV, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setattr("shelf_search.config.platform.system", lambda: "Darwin")

    assert default_data_dir() == tmp_path / "Library" / "Application Support" / "shelf-search"


def test_audit_size_cap_default_and_file_override(tmp_path: Path) -> None:
    assert default_config(tmp_path).audit.max_bytes == 5_242_880

    merged = merge_config(default_config(tmp_path), {"audit": {"max_bytes": 4096}}, CliOverrides())

    assert merged.audit.max_bytes == 4096
