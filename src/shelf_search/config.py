"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import os
import platform
import tomllib
from dataclasses import dataclass
from pathlib import Path

APP_NAME = "shelf-search"
DATA_DIR_ENV = "SHELF_SEARCH_DATA_DIR"
CONFIG_FILE_NAME = "config.toml"

MAX_BATCH_SIZE_CAP = 1_000_000
MAX_WRITER_MEMORY_MB_CAP = 4_096
MAX_TAKE_CAP = 10_000
MAX_OPEN_DELAY_MS_CAP = 60_000
MAX_AUDIT_BYTES_CAP = 1_073_741_824

DEFAULT_INCLUDE_EXTENSIONS = (".html", ".htm", ".txt")
DEFAULT_MARKUP_EXTENSIONS = (".htm", ".html")
DEFAULT_BATCH_SIZE = 20_000
DEFAULT_WRITER_MEMORY_MB = 100
DEFAULT_TAKE = 10
DEFAULT_OPEN_TAKE = 1
DEFAULT_OPEN_DELAY_MS = 500
DEFAULT_AUDIT_MAX_BYTES = 5_242_880

EXTRACT_ERROR_POLICIES = ("skip", "abort")


@dataclass(slots=True, frozen=True)
class IndexConfig:
    """Crawl and writer settings for index builds."""

    include_extensions: tuple[str, ...]
    markup_extensions: tuple[str, ...]
    exclude_globs: tuple[str, ...]
    case_sensitive_extensions: bool
    batch_size: int
    writer_memory_mb: int
    on_extract_error: str

    @property
    def writer_memory_bytes(self) -> int:
        return self.writer_memory_mb * 1024 * 1024


@dataclass(slots=True, frozen=True)
class SearchConfig:
    """Pagination defaults and open throttling."""

    default_take: int
    default_open_take: int
    open_delay_ms: int

    @property
    def open_delay_seconds(self) -> float:
        return self.open_delay_ms / 1000.0


@dataclass(slots=True, frozen=True)
class AuditConfig:
    """Size cap for the audit log before it rotates."""

    max_bytes: int


@dataclass(slots=True, frozen=True)
class AppConfig:
    """Fully merged application configuration."""

    data_dir: Path
    index: IndexConfig
    search: SearchConfig
    audit: AuditConfig


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    data_dir: Path | None = None
    batch_size: int | None = None
    on_extract_error: str | None = None


def default_data_dir() -> Path:
    """Return the platform data directory, honouring the environment override."""
    override = os.environ.get(DATA_DIR_ENV, "").strip()
    if override:
        return Path(override).expanduser()
    system = platform.system()
    if system == "Darwin":
        base_dir = Path.home() / "Library" / "Application Support"
    elif system == "Windows":
        base_dir = Path(os.environ.get("LOCALAPPDATA") or Path.home() / "AppData" / "Local")
    else:
        xdg_data_home = os.environ.get("XDG_DATA_HOME", "").strip()
        base_dir = Path(xdg_data_home) if xdg_data_home else Path.home() / ".local" / "share"
    return base_dir / APP_NAME


def default_config(data_dir: Path) -> AppConfig:
    """Build default config for a given storage root."""
    return AppConfig(
        data_dir=data_dir.resolve(),
        index=IndexConfig(
            include_extensions=DEFAULT_INCLUDE_EXTENSIONS,
            markup_extensions=DEFAULT_MARKUP_EXTENSIONS,
            exclude_globs=(),
            case_sensitive_extensions=False,
            batch_size=DEFAULT_BATCH_SIZE,
            writer_memory_mb=DEFAULT_WRITER_MEMORY_MB,
            on_extract_error="skip",
        ),
        search=SearchConfig(
            default_take=DEFAULT_TAKE,
            default_open_take=DEFAULT_OPEN_TAKE,
            open_delay_ms=DEFAULT_OPEN_DELAY_MS,
        ),
        audit=AuditConfig(max_bytes=DEFAULT_AUDIT_MAX_BYTES),
    )


def load_config_file(data_dir: Path) -> dict[str, object]:
    """Load optional config.toml from the storage root."""
    config_path = data_dir / CONFIG_FILE_NAME
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{CONFIG_FILE_NAME} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _extensions(value: object, section: str, field: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Config field '{section}.{field}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip(".").strip():
            raise ValueError(f"Config field '{section}.{field}' must contain only extensions.")
        output.append(item if item.startswith(".") else f".{item}")
    return tuple(output)


def _tuple_of_strings(value: object, section: str, field: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Config field '{section}.{field}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValueError(f"Config field '{section}.{field}' must contain only strings.")
        output.append(item)
    return tuple(output)


def _optional_bool(value: object, name: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f"Config field '{name}' must be a boolean.")
    return value


def _extract_error_policy(value: object, name: str, default: str) -> str:
    if value is None:
        return default
    if value not in EXTRACT_ERROR_POLICIES:
        allowed = ", ".join(EXTRACT_ERROR_POLICIES)
        raise ValueError(f"Config field '{name}' must be one of: {allowed}.")
    return str(value)


def merge_config(
    base: AppConfig, file_payload: dict[str, object], overrides: CliOverrides
) -> AppConfig:
    """Merge defaults, config file, then CLI overrides."""
    index_payload = _get_table(file_payload, "index")
    search_payload = _get_table(file_payload, "search")
    audit_payload = _get_table(file_payload, "audit")

    include_extensions = base.index.include_extensions
    if "include_extensions" in index_payload:
        include_extensions = _extensions(
            index_payload["include_extensions"], "index", "include_extensions"
        )
    markup_extensions = base.index.markup_extensions
    if "markup_extensions" in index_payload:
        markup_extensions = _extensions(
            index_payload["markup_extensions"], "index", "markup_extensions"
        )
    exclude_globs = base.index.exclude_globs
    if "exclude_globs" in index_payload:
        exclude_globs = _tuple_of_strings(index_payload["exclude_globs"], "index", "exclude_globs")

    merged = AppConfig(
        data_dir=base.data_dir,
        index=IndexConfig(
            include_extensions=include_extensions,
            markup_extensions=markup_extensions,
            exclude_globs=exclude_globs,
            case_sensitive_extensions=_optional_bool(
                index_payload.get("case_sensitive_extensions"),
                "index.case_sensitive_extensions",
                base.index.case_sensitive_extensions,
            ),
            batch_size=_optional_positive_int_with_cap(
                index_payload.get("batch_size"),
                "index.batch_size",
                base.index.batch_size,
                MAX_BATCH_SIZE_CAP,
            ),
            writer_memory_mb=_optional_positive_int_with_cap(
                index_payload.get("writer_memory_mb"),
                "index.writer_memory_mb",
                base.index.writer_memory_mb,
                MAX_WRITER_MEMORY_MB_CAP,
            ),
            on_extract_error=_extract_error_policy(
                index_payload.get("on_extract_error"),
                "index.on_extract_error",
                base.index.on_extract_error,
            ),
        ),
        search=SearchConfig(
            default_take=_optional_positive_int_with_cap(
                search_payload.get("default_take"),
                "search.default_take",
                base.search.default_take,
                MAX_TAKE_CAP,
            ),
            default_open_take=_optional_positive_int_with_cap(
                search_payload.get("default_open_take"),
                "search.default_open_take",
                base.search.default_open_take,
                MAX_TAKE_CAP,
            ),
            open_delay_ms=_optional_non_negative_int_with_cap(
                search_payload.get("open_delay_ms"),
                "search.open_delay_ms",
                base.search.open_delay_ms,
                MAX_OPEN_DELAY_MS_CAP,
            ),
        ),
        audit=AuditConfig(
            max_bytes=_optional_positive_int_with_cap(
                audit_payload.get("max_bytes"),
                "audit.max_bytes",
                base.audit.max_bytes,
                MAX_AUDIT_BYTES_CAP,
            )
        ),
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: AppConfig, overrides: CliOverrides) -> AppConfig:
    """Apply startup overrides at highest precedence."""
    index = IndexConfig(
        include_extensions=config.index.include_extensions,
        markup_extensions=config.index.markup_extensions,
        exclude_globs=config.index.exclude_globs,
        case_sensitive_extensions=config.index.case_sensitive_extensions,
        batch_size=_optional_positive_int_with_cap(
            overrides.batch_size,
            "overrides.batch_size",
            config.index.batch_size,
            MAX_BATCH_SIZE_CAP,
        ),
        writer_memory_mb=config.index.writer_memory_mb,
        on_extract_error=_extract_error_policy(
            overrides.on_extract_error,
            "overrides.on_extract_error",
            config.index.on_extract_error,
        ),
    )
    data_dir = overrides.data_dir or config.data_dir
    return AppConfig(
        data_dir=data_dir.resolve(), index=index, search=config.search, audit=config.audit
    )


def load_effective_config(overrides: CliOverrides | None = None) -> AppConfig:
    """Load effective config using merge order defaults -> config file -> overrides."""
    overrides = overrides or CliOverrides()
    data_dir = (overrides.data_dir or default_data_dir()).resolve()
    base = default_config(data_dir)
    payload = load_config_file(data_dir)
    return merge_config(base, payload, overrides)


def _optional_positive_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int | None,
) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Config field '{name}' must be a positive integer.")
    if cap is not None and value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value


def _optional_non_negative_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int,
) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"Config field '{name}' must be a non-negative integer.")
    if value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value
