"""Query execution against a named library index."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

from shelf_search.errors import EngineError
from shelf_search.index.builder import index_directory
from shelf_search.index.engine import IndexEngine, Searcher
from shelf_search.index.models import PATH_FIELD, TEXT_FIELD, SearchRequest
from shelf_search.library.registry import LibraryRegistry


def search_library(
    storage_path: Path,
    registry: LibraryRegistry,
    request: SearchRequest,
    cwd: Path,
) -> Iterator[str]:
    """Resolve the library, run the query and yield stored result paths.

    The name and query are validated before the first path is yielded, so
    resolution and parse failures surface when this is called. Hits whose
    stored document cannot be loaded are dropped.
    """
    name = registry.resolve_name(request.index_name, cwd)
    engine = IndexEngine.open(index_directory(storage_path, name), name=name)
    searcher = engine.searcher()
    try:
        query = searcher.parse_query(request.text, [TEXT_FIELD])
        hits = searcher.search(query, limit=request.take, offset=request.skip)
    except BaseException:
        searcher.close()
        raise
    return _stored_paths(searcher, [hit.doc_id for hit in hits])


def _stored_paths(searcher: Searcher, doc_ids: list[int]) -> Iterator[str]:
    with searcher:
        for doc_id in doc_ids:
            try:
                document = searcher.doc(doc_id)
            except EngineError:
                continue
            path = document.get(PATH_FIELD)
            if isinstance(path, str):
                yield path
