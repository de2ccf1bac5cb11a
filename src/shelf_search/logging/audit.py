"""JSONL audit trail of shelf commands."""

from __future__ import annotations

import json
import uuid
from collections import deque
from collections.abc import Iterator
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

# Argument keys recorded verbatim when they carry the expected type.
VERBATIM_KEYS: dict[str, type] = {
    "name": str,
    "index": str,
    "root": str,
    "cwd": str,
    "skip": int,
    "take": int,
    "limit": int,
    "force": bool,
    "open": bool,
}


@dataclass(slots=True, frozen=True)
class AuditEvent:
    """One CLI command and its outcome."""

    timestamp: str
    invocation_id: str
    command: str
    ok: bool
    error_code: str | None
    metadata: dict[str, object]


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_invocation_id() -> str:
    return f"cli-{uuid.uuid4().hex[:12]}"


def sanitize_arguments(arguments: dict[str, object]) -> dict[str, object]:
    """Reduce command arguments to loggable facts; free text keeps only its length."""
    sanitized: dict[str, object] = {}
    for key in sorted(arguments):
        value = arguments[key]
        expected = VERBATIM_KEYS.get(key)
        if expected is not None and type(value) is expected:
            sanitized[key] = value
        elif isinstance(value, str):
            sanitized[f"{key}_present"] = True
            sanitized[f"{key}_length"] = len(value)
        elif value is None or isinstance(value, (bool, int, float)):
            sanitized[key] = value
        elif isinstance(value, (list, tuple)):
            sanitized[f"{key}_length"] = len(value)
        else:
            sanitized[f"{key}_type"] = type(value).__name__
    return sanitized


class JsonlAuditLogger:
    """Append-only audit file with one rotated backup.

    Once appending would grow the file past `max_bytes`, the file is moved to
    `<name>.1` (replacing any older backup) and a fresh file is started.
    """

    def __init__(self, path: Path, max_bytes: int | None = None) -> None:
        self._path = path
        self._max_bytes = max_bytes

    @property
    def path(self) -> Path:
        return self._path

    @property
    def backup_path(self) -> Path:
        return self._path.with_name(f"{self._path.name}.1")

    def append(self, event: AuditEvent) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(asdict(event), sort_keys=True)
        self._rotate_if_needed(len(line.encode("utf-8")) + 1)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(f"{line}\n")

    def read(self, since: str | None = None, limit: int = 50) -> list[dict[str, object]]:
        """Return the newest `limit` events at or after `since`, oldest first."""
        if limit < 1:
            return []
        tail: deque[dict[str, object]] = deque(maxlen=limit)
        for record in self._records():
            timestamp = record.get("timestamp")
            if since is not None and (not isinstance(timestamp, str) or timestamp < since):
                continue
            tail.append(record)
        return list(tail)

    def _rotate_if_needed(self, incoming_bytes: int) -> None:
        if self._max_bytes is None or not self._path.exists():
            return
        if self._path.stat().st_size + incoming_bytes <= self._max_bytes:
            return
        self._path.replace(self.backup_path)

    def _records(self) -> Iterator[dict[str, object]]:
        for path in (self.backup_path, self._path):
            if not path.exists():
                continue
            with path.open("r", encoding="utf-8") as handle:
                for line in handle:
                    if not line.strip():
                        continue
                    try:
                        record = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    if isinstance(record, dict):
                        yield record
