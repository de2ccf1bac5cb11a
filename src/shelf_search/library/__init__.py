"""Library registry package."""

from .models import IndexRequest, LibraryEntry, validate_library_name
from .registry import REGISTRY_FILE_NAME, LibraryRegistry

__all__ = [
    "IndexRequest",
    "LibraryEntry",
    "LibraryRegistry",
    "REGISTRY_FILE_NAME",
    "validate_library_name",
]
