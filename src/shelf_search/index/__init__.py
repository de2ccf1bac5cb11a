"""Indexing and search package."""

from .builder import build_index, index_directory, prepare_index_directory
from .discovery import DiscoveryProfile, has_allowed_extension, iter_eligible_files
from .engine import (
    INDEX_SCHEMA_VERSION,
    META_FILE_NAME,
    FieldSpec,
    IndexEngine,
    IndexWriter,
    Query,
    Schema,
    ScoredDocument,
    Searcher,
    build_match_expression,
)
from .extract import extract_text, strip_markup
from .models import PATH_FIELD, TEXT_FIELD, BuildReport, SearchRequest, library_schema
from .search import search_library

__all__ = [
    "BuildReport",
    "DiscoveryProfile",
    "FieldSpec",
    "INDEX_SCHEMA_VERSION",
    "IndexEngine",
    "IndexWriter",
    "META_FILE_NAME",
    "PATH_FIELD",
    "Query",
    "Schema",
    "ScoredDocument",
    "SearchRequest",
    "Searcher",
    "TEXT_FIELD",
    "build_index",
    "build_match_expression",
    "extract_text",
    "has_allowed_extension",
    "index_directory",
    "iter_eligible_files",
    "library_schema",
    "prepare_index_directory",
    "search_library",
    "strip_markup",
]
