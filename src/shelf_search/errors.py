"""Error taxonomy shared by the registry, index and dispatch layers."""

from __future__ import annotations


class ShelfError(Exception):
    """Base class for failures reported to the user as a single line."""

    code = "ERROR"


class NotFoundError(ShelfError):
    """A lookup key or on-disk index does not exist."""

    code = "NOT_FOUND"


class LibraryNotFoundError(NotFoundError):
    """No registry entry matches the requested root."""

    def __init__(self, root: str) -> None:
        super().__init__(f"no library for {root}")
        self.root = root


class IndexNotFoundError(NotFoundError):
    """The index directory for a library is missing or incomplete."""

    def __init__(self, name: str, directory: str) -> None:
        super().__init__(f"no index for library {name!r} at {directory}")
        self.name = name
        self.directory = directory


class AlreadyExistsError(ShelfError):
    """An operation would overwrite state without explicit consent."""

    code = "ALREADY_EXISTS"


class IndexExistsError(AlreadyExistsError):
    def __init__(self, name: str) -> None:
        super().__init__(f"an index already exists for library {name!r}")
        self.name = name


class AlreadyRegisteredError(AlreadyExistsError):
    code = "ALREADY_REGISTERED"

    def __init__(self, name: str, root: str) -> None:
        super().__init__(f"library {name!r} is already registered for {root}")
        self.name = name
        self.root = root


class ParseError(ShelfError):
    """Persisted state or user input could not be parsed."""

    code = "PARSE_ERROR"


class RegistryParseError(ParseError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"malformed library registry {path}: {reason}")
        self.path = path
        self.reason = reason


class InvalidQueryError(ParseError):
    code = "INVALID_QUERY"

    def __init__(self, query: str, reason: str) -> None:
        super().__init__(f"invalid query {query!r}: {reason}")
        self.query = query
        self.reason = reason


class EngineError(ShelfError):
    """Opaque failure surfaced by the index engine."""

    code = "ENGINE_ERROR"


class DocumentNotFoundError(EngineError):
    def __init__(self, doc_id: int) -> None:
        super().__init__(f"document {doc_id} is not stored in the index")
        self.doc_id = doc_id


class OpenerError(ShelfError):
    """The platform opener failed for a result path."""

    code = "OPEN_FAILED"

    def __init__(self, target: str, reason: str) -> None:
        super().__init__(f"unable to open {target}: {reason}")
        self.target = target
        self.reason = reason


def error_code(error: BaseException) -> str:
    """Return the stable audit code for any propagated failure."""
    if isinstance(error, ShelfError):
        return error.code
    if isinstance(error, OSError):
        return "IO_ERROR"
    if isinstance(error, ValueError):
        return "INVALID_ARGUMENT"
    return "INTERNAL_ERROR"
