from __future__ import annotations

from git_detective.attribution import attribute_file
from git_detective.classify import Classification
from git_detective.models import BlameHunk, LineKind, Stats

C, M, B = LineKind.CODE, LineKind.COMMENT, LineKind.BLANK


def _classification(kinds: list[LineKind], language: str = "Rust") -> Classification:
    return Classification(language=language, line_kinds={i: k for i, k in enumerate(kinds, start=1)})


def test_single_author_ten_line_file() -> None:
    cls = _classification([C, C, C, M, B, C, C, C, C, C])
    lang, contribs = attribute_file([BlameHunk(start=1, lines=10, author_name=b"A")], cls)
    assert lang == "Rust"
    assert contribs == {"A": Stats(lines=10, code=8, comments=1, blanks=1)}


def test_hunks_split_between_authors() -> None:
    cls = _classification([M, C, B, C, C])
    hunks = [
        BlameHunk(start=1, lines=2, author_name=b"Alice"),
        BlameHunk(start=3, lines=2, author_name="Björn".encode("utf-8")),
        BlameHunk(start=5, lines=1, author_name=b"Alice"),
    ]
    _, contribs = attribute_file(hunks, cls)
    assert contribs == {
        "Alice": Stats(lines=3, code=2, comments=1),
        "Björn": Stats(lines=2, code=1, blanks=1),
    }


def test_non_utf8_author_hunk_is_dropped_whole() -> None:
    cls = _classification([C, C, C, C])
    hunks = [
        BlameHunk(start=1, lines=2, author_name=b"\xff\xfeBad"),
        BlameHunk(start=3, lines=2, author_name=b"Good"),
    ]
    _, contribs = attribute_file(hunks, cls)
    assert contribs == {"Good": Stats(lines=2, code=2)}


def test_lines_without_classification_are_skipped() -> None:
    # blame saw 6 lines, the file on disk only has 3
    cls = _classification([C, B, M])
    _, contribs = attribute_file([BlameHunk(start=1, lines=6, author_name=b"A")], cls)
    assert contribs == {"A": Stats(lines=3, code=1, comments=1, blanks=1)}


def test_author_with_no_classified_lines_is_absent() -> None:
    cls = _classification([C])
    _, contribs = attribute_file(
        [BlameHunk(start=1, lines=1, author_name=b"A"), BlameHunk(start=7, lines=3, author_name=b"B")],
        cls,
    )
    assert contribs == {"A": Stats(lines=1, code=1)}


def test_empty_language_falls_back_to_plain_text() -> None:
    lang, contribs = attribute_file([], Classification(language="", line_kinds={}))
    assert lang == "Plain Text"
    assert contribs == {}
