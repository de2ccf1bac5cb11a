"""Plain-text extraction for indexed files."""

from __future__ import annotations

from pathlib import Path

from bs4 import BeautifulSoup

from shelf_search.index.discovery import has_allowed_extension

HIDDEN_MARKUP_TAGS = ("script", "style", "template", "noscript")


def extract_text(
    path: Path,
    markup_extensions: tuple[str, ...],
    case_sensitive: bool = False,
) -> str:
    """Read a file as UTF-8 (invalid bytes replaced), stripping markup when applicable."""
    text = path.read_bytes().decode("utf-8", errors="replace")
    if has_allowed_extension(path, markup_extensions, case_sensitive):
        return strip_markup(text)
    return text


def strip_markup(markup: str) -> str:
    """Return the visible text nodes of a markup fragment joined by single spaces."""
    soup = BeautifulSoup(markup, "html.parser")
    for element in soup(HIDDEN_MARKUP_TAGS):
        element.decompose()
    return " ".join(soup.stripped_strings)
