"""Library operations wired to config, registry and the audit log."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import TypeVar

from shelf_search.config import AppConfig, CliOverrides, load_effective_config
from shelf_search.errors import error_code
from shelf_search.index import BuildReport, SearchRequest, build_index, search_library
from shelf_search.library import IndexRequest, LibraryEntry, LibraryRegistry
from shelf_search.logging import (
    AuditEvent,
    JsonlAuditLogger,
    new_invocation_id,
    sanitize_arguments,
    utc_timestamp,
)

AUDIT_FILE_NAME = "audit.jsonl"

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LibraryService:
    """Entry point for every user-facing library operation."""

    def __init__(self, config: AppConfig, invocation_id: str | None = None) -> None:
        self._config = config
        self._data_dir = config.data_dir
        self._audit_logger = JsonlAuditLogger(
            path=self._data_dir / AUDIT_FILE_NAME, max_bytes=config.audit.max_bytes
        )
        self._invocation_id = invocation_id or new_invocation_id()

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def audit_logger(self) -> JsonlAuditLogger:
        return self._audit_logger

    def load_registry(self) -> LibraryRegistry:
        return LibraryRegistry.load(self._data_dir)

    def create_index(
        self, name: str, root: str | Path | None, force: bool, cwd: Path
    ) -> BuildReport:
        """Build a library index and register its root under `name`."""
        arguments = {
            "name": name,
            "root": str(root) if root is not None else None,
            "force": force,
            "cwd": str(cwd),
        }

        def action() -> BuildReport:
            request = IndexRequest.for_create(name=name, root=root, force=force, cwd=cwd)
            return self._build_and_register(request)

        return self._run("create-index", arguments, action, BuildReport.to_dict)

    def update_index(self, cwd: Path) -> BuildReport:
        """Rebuild the library registered at `cwd`, always overwriting."""

        def action() -> BuildReport:
            entry = self.load_registry().entry_for(cwd)
            return self._build_and_register(IndexRequest.for_update(entry))

        return self._run("update", {"cwd": str(cwd)}, action, BuildReport.to_dict)

    def list_indexes(self) -> list[LibraryEntry]:
        """Return registered libraries sorted by name."""
        return self._run(
            "list-indexes",
            {},
            lambda: self.load_registry().entries(),
            lambda entries: {"library_count": len(entries)},
        )

    def which(self, cwd: Path) -> LibraryEntry:
        """Return the library registered at `cwd`."""
        return self._run(
            "which",
            {"cwd": str(cwd)},
            lambda: self.load_registry().entry_for(cwd),
            lambda entry: {"name": entry.name},
        )

    def search(
        self,
        query: str,
        index_name: str | None,
        skip: int | None,
        take: int | None,
        open_files: bool,
        cwd: Path,
    ) -> list[str]:
        """Run a query and return the ordered result paths for this page."""
        if take is None:
            search_config = self._config.search
            take = search_config.default_open_take if open_files else search_config.default_take
        request = SearchRequest(
            text=query,
            index_name=index_name,
            skip=skip if skip is not None else 0,
            take=take,
        )
        arguments = {
            "query": query,
            "index": index_name,
            "skip": request.skip,
            "take": request.take,
            "open": open_files,
            "cwd": str(cwd),
        }

        def action() -> list[str]:
            paths: Iterator[str] = search_library(
                self._data_dir, self.load_registry(), request, cwd
            )
            return list(paths)

        return self._run("search", arguments, action, lambda paths: {"result_count": len(paths)})

    def history(self, limit: int) -> list[dict[str, object]]:
        """Return the most recent audit events, oldest first."""
        return self._audit_logger.read(limit=limit)

    def _build_and_register(self, request: IndexRequest) -> BuildReport:
        # A library is registered only once its index build has succeeded.
        report = build_index(self._data_dir, request, self._config.index)
        self.load_registry().register(request.root, request.name, force=request.force)
        logger.info("Registered library %s at %s", request.name, request.root)
        return report

    def _run(
        self,
        command: str,
        arguments: dict[str, object],
        action: Callable[[], T],
        summarize: Callable[[T], dict[str, object]],
    ) -> T:
        try:
            result = action()
        except Exception as error:
            self._log(command, arguments, ok=False, code=error_code(error), result={})
            raise
        self._log(command, arguments, ok=True, code=None, result=summarize(result))
        return result

    def _log(
        self,
        command: str,
        arguments: dict[str, object],
        ok: bool,
        code: str | None,
        result: dict[str, object],
    ) -> None:
        metadata: dict[str, object] = {"arguments": sanitize_arguments(arguments)}
        if result:
            metadata["result"] = result
        self._audit_logger.append(
            AuditEvent(
                timestamp=utc_timestamp(),
                invocation_id=self._invocation_id,
                command=command,
                ok=ok,
                error_code=code,
                metadata=metadata,
            )
        )


def create_service(
    data_dir: str | Path | None = None,
    cli_overrides: CliOverrides | None = None,
) -> LibraryService:
    """Create a configured service instance."""
    overrides = cli_overrides or CliOverrides()
    if data_dir is not None:
        overrides = CliOverrides(
            data_dir=Path(data_dir).expanduser().resolve(),
            batch_size=overrides.batch_size,
            on_extract_error=overrides.on_extract_error,
        )
    return LibraryService(config=load_effective_config(overrides))
