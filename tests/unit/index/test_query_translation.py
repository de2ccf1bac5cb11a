from __future__ import annotations

from pathlib import Path

import pytest

from shelf_search.errors import InvalidQueryError
from shelf_search.index import IndexEngine, Searcher, build_match_expression, library_schema


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("apple", "apple"),
        ("apple cherry", "apple OR cherry"),
        ("apple AND cherry", "apple AND cherry"),
        ("apple NOT cherry", "apple NOT cherry"),
        ('"banana bread" apple', '"banana bread" OR apple'),
        ("(apple cherry) AND pie", "( apple OR cherry ) AND pie"),
        ("app*", "app*"),
        ("file.txt", '"file.txt"'),
        ("e-mail", '"e-mail"'),
        ("don't", "\"don't\""),
        ("C++", '"C++"'),
        ("e-mai*", '"e-mai"*'),
        ("apple +++ cherry", "apple OR cherry"),
        ("NEAR", '"NEAR"'),
    ],
)
def test_query_text_translation(text: str, expected: str) -> None:
    assert build_match_expression(text) == expected


@pytest.mark.parametrize("text", ['"apple', "+++", "-- !!"])
def test_untranslatable_queries_are_rejected(text: str) -> None:
    with pytest.raises(InvalidQueryError):
        build_match_expression(text)


def _searcher_with(tmp_path: Path, texts: list[str]) -> Searcher:
    engine = IndexEngine.create_in_dir(tmp_path / "idx", library_schema())
    with engine.writer(16 * 1024 * 1024) as writer:
        for number, text in enumerate(texts):
            writer.add_document({"path": f"/lib/{number}.txt", "text": text})
        writer.commit()
    return IndexEngine.open(tmp_path / "idx").searcher()


@pytest.mark.parametrize(
    ("query", "expected_path"),
    [
        ("file.txt", "/lib/0.txt"),
        ("e-mail", "/lib/1.txt"),
        ("don't", "/lib/2.txt"),
        ("C++", "/lib/3.txt"),
    ],
)
def test_punctuated_queries_match_their_tokens(
    tmp_path: Path, query: str, expected_path: str
) -> None:
    texts = [
        "open file.txt in the editor",
        "send an e-mail tomorrow",
        "please don't panic",
        "learning C++ templates",
    ]
    with _searcher_with(tmp_path, texts) as searcher:
        hits = searcher.search(searcher.parse_query(query, ["text"]), limit=10)
        paths = [searcher.doc(hit.doc_id)["path"] for hit in hits]

    assert paths[0] == expected_path


@pytest.mark.parametrize("query", ["apple AND", "(apple", "apple )", "NOT apple"])
def test_real_syntax_errors_are_still_rejected(tmp_path: Path, query: str) -> None:
    with _searcher_with(tmp_path, ["apple"]) as searcher:
        with pytest.raises(InvalidQueryError):
            searcher.parse_query(query, ["text"])
