"""Deliver search results: print them, or open them one at a time."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from typing import TextIO

from shelf_search.opener import open_path

DEFAULT_OPEN_DELAY_SECONDS = 0.5


def dispatch_results(
    paths: Iterable[str],
    open_files: bool,
    out_stream: TextIO,
    opener: Callable[[str], None] = open_path,
    delay_seconds: float = DEFAULT_OPEN_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Print or open each path in order and return how many were handled.

    Opening waits `delay_seconds` between consecutive opens but not before the
    first. An opener failure propagates and the remaining paths are not opened.
    """
    handled = 0
    if not open_files:
        for path in paths:
            out_stream.write(f"{path}\n")
            handled += 1
        out_stream.flush()
        return handled

    for path in paths:
        if handled:
            sleep(delay_seconds)
        opener(path)
        handled += 1
    return handled
