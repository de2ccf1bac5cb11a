"""Full index builds: crawl, extract, and commit in bounded batches."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from shelf_search.config import IndexConfig
from shelf_search.errors import IndexExistsError
from shelf_search.index.discovery import DiscoveryProfile, iter_eligible_files
from shelf_search.index.engine import META_FILE_NAME, IndexEngine
from shelf_search.index.extract import extract_text
from shelf_search.index.models import PATH_FIELD, TEXT_FIELD, BuildReport, library_schema
from shelf_search.library.models import IndexRequest

logger = logging.getLogger(__name__)


def index_directory(storage_path: Path, name: str) -> Path:
    """Return the per-library index directory."""
    return storage_path / name


def prepare_index_directory(storage_path: Path, request: IndexRequest) -> Path:
    """Check overwrite consent, then leave an empty directory for the new index."""
    path = index_directory(storage_path, request.name)
    if (path / META_FILE_NAME).exists() and not request.force:
        raise IndexExistsError(request.name)
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)
    return path


def build_index(storage_path: Path, request: IndexRequest, config: IndexConfig) -> BuildReport:
    """Rebuild the index for one library from scratch.

    Any engine or I/O failure aborts the build and leaves the partially written
    directory in place; rerun with force to retry. Unreadable files are skipped
    or abort the build depending on `config.on_extract_error`.
    """
    if not request.root.is_dir():
        raise NotADirectoryError(f"library root is not a directory: {request.root}")
    data_path = prepare_index_directory(storage_path, request)
    engine = IndexEngine.create_in_dir(data_path, library_schema())
    profile = DiscoveryProfile()
    indexed = 0
    skipped = 0
    commits = 0

    with engine.writer(config.writer_memory_bytes) as writer:
        files = iter_eligible_files(
            request.root, config, skip_dirs=(storage_path,), profile=profile
        )
        for path in files:
            try:
                text = extract_text(
                    path, config.markup_extensions, config.case_sensitive_extensions
                )
            except OSError as error:
                if config.on_extract_error == "abort":
                    raise
                logger.warning("Skipping unreadable file %s: %s", path, error)
                skipped += 1
                continue
            writer.add_document({PATH_FIELD: str(path), TEXT_FIELD: text})
            indexed += 1
            if writer.pending >= config.batch_size:
                writer.commit()
                commits += 1
                logger.info("Committed %d documents for %s", writer.committed, request.name)
        writer.commit()
        commits += 1

    for directory in profile.unreadable_dirs:
        logger.warning("Skipped unreadable directory %s", directory)
    logger.info(
        "Indexed %d files for %s (%d skipped, %d excluded by extension)",
        indexed,
        request.name,
        skipped,
        profile.excluded_by_extension,
    )
    return BuildReport(
        name=request.name,
        root=request.root,
        indexed=indexed,
        skipped=skipped,
        commits=commits,
    )
