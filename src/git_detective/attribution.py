from __future__ import annotations

from typing import Iterable

from .classify import PLAIN_TEXT, Classification
from .errors import EncodingError
from .models import BlameHunk, Stats


def attribute_file(hunks: Iterable[BlameHunk], classification: Classification) -> tuple[str, dict[str, Stats]]:
    """
    Combine one file's blame hunks with its line classification.

    Lossy on purpose: a hunk whose author name is not UTF-8 is dropped as a
    whole, and a blamed line with no classification (the file changed between
    reading and blaming) is skipped. Neither raises.
    """
    language = classification.language or PLAIN_TEXT
    kinds = classification.line_kinds
    contributions: dict[str, Stats] = {}

    for hunk in hunks:
        try:
            author = hunk.author()
        except EncodingError:
            continue

        for line_num in hunk.line_range:
            kind = kinds.get(line_num)
            if kind is None:
                continue
            contributions[author] = contributions.get(author, Stats()) + Stats.from_line_kind(kind)

    return language, contributions
