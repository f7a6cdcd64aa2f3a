from __future__ import annotations

import dataclasses
import datetime as dt
import enum
from typing import Iterator, Optional, Union

from .errors import EncodingError


class LineKind(enum.Enum):
    CODE = "code"
    COMMENT = "comment"
    BLANK = "blank"


@dataclasses.dataclass(frozen=True)
class Stats:
    lines: int = 0
    code: int = 0
    comments: int = 0
    blanks: int = 0

    def __post_init__(self) -> None:
        if min(self.code, self.comments, self.blanks) < 0:
            raise ValueError(f"negative line count: {self!r}")
        if self.lines != self.code + self.comments + self.blanks:
            raise ValueError(f"lines must equal code + comments + blanks: {self!r}")

    @classmethod
    def from_line_kind(cls, kind: LineKind) -> "Stats":
        if kind is LineKind.CODE:
            return cls(lines=1, code=1)
        if kind is LineKind.COMMENT:
            return cls(lines=1, comments=1)
        return cls(lines=1, blanks=1)

    def __add__(self, other: "Stats") -> "Stats":
        if not isinstance(other, Stats):
            return NotImplemented
        return Stats(
            lines=self.lines + other.lines,
            code=self.code + other.code,
            comments=self.comments + other.comments,
            blanks=self.blanks + other.blanks,
        )

    def is_zero(self) -> bool:
        return self.lines == 0 and self.code == 0 and self.comments == 0 and self.blanks == 0


@dataclasses.dataclass(frozen=True)
class DiffStats:
    insertions: int = 0
    deletions: int = 0

    @property
    def changed(self) -> int:
        return self.insertions + self.deletions

    def __add__(self, other: "DiffStats") -> "DiffStats":
        if not isinstance(other, DiffStats):
            return NotImplemented
        return DiffStats(insertions=self.insertions + other.insertions, deletions=self.deletions + other.deletions)


class ProjectStats:
    """
    Contributions for every contributor, broken down by language:
    author -> language -> Stats.

    Missing entries count as zero. `merge` / `+` is the nested sum: authors
    are unioned, then languages, then the Stats are added. The operation is
    commutative and associative with `ProjectStats()` as identity, so per-file
    results can be folded together in any order.
    """

    def __init__(self, stats: Optional[dict[str, dict[str, Stats]]] = None) -> None:
        self._stats: dict[str, dict[str, Stats]] = {}
        for author, langs in (stats or {}).items():
            for lang, st in langs.items():
                self.insert(author, lang, st)

    @classmethod
    def from_file(cls, language: str, contributions: dict[str, Stats]) -> "ProjectStats":
        out = cls()
        for author, st in contributions.items():
            out.insert(author, language, st)
        return out

    def insert(self, author: str, language: str, stats: Stats) -> None:
        langs = self._stats.setdefault(author, {})
        langs[language] = langs.get(language, Stats()) + stats

    def merge(self, other: "ProjectStats") -> "ProjectStats":
        for author, langs in other._stats.items():
            for lang, st in langs.items():
                self.insert(author, lang, st)
        return self

    def __add__(self, other: "ProjectStats") -> "ProjectStats":
        if not isinstance(other, ProjectStats):
            return NotImplemented
        return ProjectStats().merge(self).merge(other)

    def __iter__(self) -> Iterator[tuple[str, dict[str, Stats]]]:
        for author, langs in self._stats.items():
            yield author, dict(langs)

    def __len__(self) -> int:
        return len(self._stats)

    def __contains__(self, author: object) -> bool:
        return author in self._stats

    def _normalized(self) -> dict[str, dict[str, Stats]]:
        out: dict[str, dict[str, Stats]] = {}
        for author, langs in self._stats.items():
            kept = {lang: st for lang, st in langs.items() if not st.is_zero()}
            if kept:
                out[author] = kept
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProjectStats):
            return NotImplemented
        return self._normalized() == other._normalized()

    def __repr__(self) -> str:
        return f"ProjectStats({self._stats!r})"

    def contributors(self) -> list[str]:
        return list(self._stats.keys())

    def contribs_by_name(self, name: str) -> Optional[dict[str, Stats]]:
        langs = self._stats.get(name)
        if langs is None:
            return None
        return dict(langs)

    def total_contribs_by_name(self, name: str) -> Optional[Stats]:
        langs = self._stats.get(name)
        if langs is None:
            return None
        total = Stats()
        for st in langs.values():
            total = total + st
        return total

    def languages(self) -> set[str]:
        return {lang for langs in self._stats.values() for lang in langs}

    def total_by_language(self) -> dict[str, Stats]:
        out: dict[str, Stats] = {}
        for langs in self._stats.values():
            for lang, st in langs.items():
                out[lang] = out.get(lang, Stats()) + st
        return out

    def total_lines(self) -> int:
        return sum(st.lines for langs in self._stats.values() for st in langs.values())

    def to_dict(self) -> dict[str, dict[str, dict[str, int]]]:
        return {
            author: {lang: dataclasses.asdict(st) for lang, st in sorted(langs.items())}
            for author, langs in sorted(self._stats.items())
        }


def decode_utf8(raw: bytes, what: str = "value") -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise EncodingError(f"{what} is not valid UTF-8: {raw!r}") from e


@dataclasses.dataclass(frozen=True)
class BlameHunk:
    start: int  # 1-based first line in the file at HEAD
    lines: int
    author_name: bytes

    @property
    def line_range(self) -> range:
        return range(self.start, self.start + self.lines)

    def author(self) -> str:
        return decode_utf8(self.author_name, "author name")


@dataclasses.dataclass(frozen=True)
class FileEntry:
    path: str
    status: str
    excluded: bool = False


@dataclasses.dataclass(frozen=True)
class HistoryEntry:
    commit_id: str
    author_name: bytes
    parent_tree: Optional[str]
    tree: str

    def author(self) -> str:
        return decode_utf8(self.author_name, f"author name of {self.commit_id}")


@dataclasses.dataclass(frozen=True)
class DiffSummary:
    insertions: int = 0
    deletions: int = 0
    changed_paths: tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class Signature:
    name_bytes: bytes
    email_bytes: bytes
    timestamp: int

    def name(self) -> str:
        return decode_utf8(self.name_bytes, "name")

    def email(self) -> str:
        return decode_utf8(self.email_bytes, "email")

    def date(self) -> dt.datetime:
        return dt.datetime.fromtimestamp(self.timestamp, tz=dt.timezone.utc)


@dataclasses.dataclass(frozen=True)
class Commit:
    id: str
    tree: str
    parents: tuple[str, ...]
    author: Signature
    committer: Signature
    message_bytes: bytes

    def message(self) -> str:
        return decode_utf8(self.message_bytes, f"message of {self.id}")

    def summary(self) -> Optional[str]:
        msg = self.message().strip()
        if not msg:
            return None
        return msg.splitlines()[0]


@dataclasses.dataclass(frozen=True)
class Branch:
    name: str
    id: str
    is_head: bool = False


@dataclasses.dataclass(frozen=True)
class Tag:
    name: str
    id: str  # id of the commit the tag points at
    message: Optional[str] = None
    tagger: Optional[Signature] = None


@dataclasses.dataclass(frozen=True)
class CommitRef:
    id: str


@dataclasses.dataclass(frozen=True)
class BranchRef:
    name: str


@dataclasses.dataclass(frozen=True)
class TagRef:
    name: str


GitReference = Union[CommitRef, BranchRef, TagRef]


class RepositoryState(enum.Enum):
    CLEAN = "clean"
    MERGE = "merge"
    REVERT = "revert"
    REVERT_SEQUENCE = "revert_sequence"
    CHERRY_PICK = "cherry_pick"
    CHERRY_PICK_SEQUENCE = "cherry_pick_sequence"
    BISECT = "bisect"
    REBASE = "rebase"
    REBASE_INTERACTIVE = "rebase_interactive"
    REBASE_MERGE = "rebase_merge"
    APPLY_MAILBOX = "apply_mailbox"
    APPLY_MAILBOX_OR_REBASE = "apply_mailbox_or_rebase"
