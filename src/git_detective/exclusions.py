from __future__ import annotations

import dataclasses
import fnmatch
from typing import Iterable

from .models import FileEntry


def normalize_path(path: str) -> str:
    p = (path or "").replace("\\", "/").strip()
    while p.startswith("./"):
        p = p[2:]
    return p.lstrip("/")


def matches_prefix(path: str, prefixes: Iterable[str]) -> bool:
    p = normalize_path(path)
    for pref in prefixes:
        pr = normalize_path(pref)
        if not pr:
            continue
        if not pr.endswith("/"):
            pr = pr + "/"
        if p.startswith(pr) or f"/{pr}" in p:
            return True
    return False


def matches_glob(path: str, globs: Iterable[str]) -> bool:
    p = normalize_path(path)
    return any(pat and fnmatch.fnmatch(p, pat) for pat in globs)


@dataclasses.dataclass(frozen=True)
class ExclusionFilter:
    """
    Paths left out of listing and attribution.

    `paths` are exact repository-relative paths, `prefixes` exclude whole
    directories (at any depth) and `globs` are fnmatch patterns. The filter is
    a value: `with_path` / `without_path` return new filters.
    """

    paths: frozenset[str] = frozenset()
    prefixes: tuple[str, ...] = ()
    globs: tuple[str, ...] = ()

    @classmethod
    def of(cls, paths: Iterable[str] = (), prefixes: Iterable[str] = (), globs: Iterable[str] = ()) -> "ExclusionFilter":
        return cls(
            paths=frozenset(normalize_path(p) for p in paths if normalize_path(p)),
            prefixes=tuple(str(p) for p in prefixes if str(p).strip()),
            globs=tuple(str(g) for g in globs if str(g).strip()),
        )

    def with_path(self, path: str) -> "ExclusionFilter":
        return dataclasses.replace(self, paths=self.paths | {normalize_path(path)})

    def without_path(self, path: str) -> "ExclusionFilter":
        return dataclasses.replace(self, paths=self.paths - {normalize_path(path)})

    def is_excluded(self, path: str) -> bool:
        p = normalize_path(path)
        if p in self.paths:
            return True
        if self.prefixes and matches_prefix(p, self.prefixes):
            return True
        if self.globs and matches_glob(p, self.globs):
            return True
        return False

    def mark(self, entries: Iterable[FileEntry]) -> list[FileEntry]:
        return [dataclasses.replace(e, excluded=self.is_excluded(e.path)) for e in entries]

    def filter(self, entries: Iterable[FileEntry]) -> list[FileEntry]:
        return [e for e in self.mark(entries) if not e.excluded]


NO_EXCLUSIONS = ExclusionFilter()
