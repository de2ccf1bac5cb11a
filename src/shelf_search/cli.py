"""Command-line entrypoint for building and searching libraries."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable
from importlib import metadata
from pathlib import Path
from typing import TextIO

from shelf_search.config import EXTRACT_ERROR_POLICIES, CliOverrides
from shelf_search.dispatch import dispatch_results
from shelf_search.errors import ShelfError
from shelf_search.service import LibraryService, create_service

PROG = "shelf"
DEFAULT_COMMAND = "search"
COMMAND_NAMES = frozenset(
    {"search", "create-index", "ci", "list-indexes", "ls", "update", "u", "which", "w", "history"}
)
PASSTHROUGH_FLAGS = frozenset({"-h", "--help", "--version"})

Handler = Callable[[LibraryService, argparse.Namespace, TextIO], int]


def build_arg_parser() -> argparse.ArgumentParser:
    """Build the argument parser; `search` is implied when no command is given."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--data-dir", required=False, default=None)
    common.add_argument("-v", "--verbose", action="store_true")

    build_options = argparse.ArgumentParser(add_help=False)
    build_options.add_argument("--batch-size", type=_positive_int, default=None)
    build_options.add_argument(
        "--on-extract-error", choices=EXTRACT_ERROR_POLICIES, default=None
    )

    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Index local document libraries and search them by name or directory.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")
    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser(
        "search",
        parents=[common],
        help="search a library (default command)",
    )
    search.add_argument("query", nargs="+")
    search.add_argument("-o", "--open", dest="open_files", action="store_true")
    search.add_argument(
        "-i",
        "--index",
        default=None,
        help=(
            "search a named library instead of guessing the library name "
            "based on the current working directory"
        ),
    )
    search.add_argument("-s", "--skip", type=_non_negative_int, default=None)
    search.add_argument("-t", "--take", type=_non_negative_int, default=None)
    search.set_defaults(handler=_search)

    create = commands.add_parser(
        "create-index", aliases=["ci"], parents=[common, build_options], help="create a new index"
    )
    create.add_argument("name", help="library name; the index is stored under this name")
    create.add_argument(
        "root", nargs="?", default=None, help="files to index (defaults to current directory)"
    )
    create.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="overwrite an existing index or registration with the same name",
    )
    create.set_defaults(handler=_create_index)

    list_indexes = commands.add_parser(
        "list-indexes", aliases=["ls"], parents=[common], help="list indexes"
    )
    list_indexes.set_defaults(handler=_list_indexes)

    update = commands.add_parser(
        "update",
        aliases=["u"],
        parents=[common, build_options],
        help="rebuild the index for the current directory",
    )
    update.set_defaults(handler=_update_index)

    which = commands.add_parser(
        "which", aliases=["w"], parents=[common], help="show the library for the current directory"
    )
    which.set_defaults(handler=_which)

    history = commands.add_parser("history", parents=[common], help="show recent commands")
    history.add_argument("--limit", type=_positive_int, default=20)
    history.set_defaults(handler=_history)
    return parser


def normalize_argv(argv: list[str]) -> list[str]:
    """Insert the implied `search` command when the first token is not a command."""
    if not argv:
        return argv
    first = argv[0]
    if first in COMMAND_NAMES or first in PASSTHROUGH_FLAGS:
        return argv
    return [DEFAULT_COMMAND, *argv]


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the shelf command."""
    parser = build_arg_parser()
    raw_args = sys.argv[1:] if argv is None else argv
    args = parser.parse_args(normalize_argv(list(raw_args)))
    configure_logging(args.verbose)
    handler: Handler = args.handler
    try:
        overrides = CliOverrides(
            batch_size=getattr(args, "batch_size", None),
            on_extract_error=getattr(args, "on_extract_error", None),
        )
        service = create_service(data_dir=args.data_dir, cli_overrides=overrides)
        return handler(service, args, sys.stdout)
    except (ShelfError, OSError, ValueError) as error:
        sys.stderr.write(f"error: {error}\n")
        return 1


def _search(service: LibraryService, args: argparse.Namespace, out: TextIO) -> int:
    paths = service.search(
        query=" ".join(args.query),
        index_name=args.index,
        skip=args.skip,
        take=args.take,
        open_files=args.open_files,
        cwd=Path.cwd(),
    )
    dispatch_results(
        paths,
        open_files=args.open_files,
        out_stream=out,
        delay_seconds=service.config.search.open_delay_seconds,
    )
    return 0


def _create_index(service: LibraryService, args: argparse.Namespace, out: TextIO) -> int:
    service.create_index(name=args.name, root=args.root, force=args.force, cwd=Path.cwd())
    return 0


def _update_index(service: LibraryService, args: argparse.Namespace, out: TextIO) -> int:
    service.update_index(cwd=Path.cwd())
    return 0


def _list_indexes(service: LibraryService, args: argparse.Namespace, out: TextIO) -> int:
    for entry in service.list_indexes():
        out.write(f"{entry.name}\n  {entry.root}\n")
    return 0


def _which(service: LibraryService, args: argparse.Namespace, out: TextIO) -> int:
    entry = service.which(cwd=Path.cwd())
    out.write(f"{entry.name}\n")
    return 0


def _history(service: LibraryService, args: argparse.Namespace, out: TextIO) -> int:
    for event in service.history(limit=args.limit):
        out.write(f"{json.dumps(event, sort_keys=True)}\n")
    return 0


def _non_negative_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as error:
        raise argparse.ArgumentTypeError(f"expected a whole number, got {raw!r}") from error
    if value < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative number, got {value}")
    return value


def _positive_int(raw: str) -> int:
    value = _non_negative_int(raw)
    if value < 1:
        raise argparse.ArgumentTypeError("expected a positive number")
    return value


def _package_version() -> str:
    try:
        return metadata.version("shelf-search")
    except metadata.PackageNotFoundError:
        return "0+unknown"


if __name__ == "__main__":
    raise SystemExit(main())
