from __future__ import annotations

from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Iterable, Optional, Protocol

from .models import DiffStats, DiffSummary, HistoryEntry


class HistorySource(Protocol):
    def walk_history(self, start: str = ...) -> Iterable[HistoryEntry]: ...

    def diff(self, old_tree: Optional[str], new_tree: str) -> DiffSummary: ...


def _diff_entry(repo: HistorySource, entry: HistoryEntry) -> tuple[str, DiffSummary]:
    author = entry.author()
    return author, repo.diff(entry.parent_tree, entry.tree)


def _accumulate(
    diffs: dict[str, DiffStats],
    files: dict[str, set[str]],
    author: str,
    summary: DiffSummary,
) -> None:
    diffs[author] = diffs.get(author, DiffStats()) + DiffStats(summary.insertions, summary.deletions)
    files.setdefault(author, set()).update(summary.changed_paths)


def history_contributions(
    repo: HistorySource,
    *,
    start: str = "HEAD",
    jobs: int = 1,
) -> tuple[dict[str, DiffStats], dict[str, set[str]]]:
    """
    Walk every commit reachable from `start` and diff it against its first
    parent (root commits against the empty tree).

    Returns (author -> DiffStats, author -> paths touched). Strict: the first
    commit whose author name, tree or diff cannot be read aborts the walk and
    the error propagates.
    """
    diffs: dict[str, DiffStats] = {}
    files: dict[str, set[str]] = {}
    entries = repo.walk_history(start)

    if jobs <= 1:
        for entry in entries:
            author, summary = _diff_entry(repo, entry)
            _accumulate(diffs, files, author, summary)
        return diffs, files

    with ThreadPoolExecutor(max_workers=jobs) as ex:
        futs = [ex.submit(_diff_entry, repo, entry) for entry in entries]
        done, pending = wait(futs, return_when=FIRST_EXCEPTION)
        for fut in done:
            exc = fut.exception()
            if exc is not None:
                for p in pending:
                    p.cancel()
                raise exc
        for fut in futs:
            author, summary = fut.result()
            _accumulate(diffs, files, author, summary)
    return diffs, files


def diff_stats(repo: HistorySource, *, start: str = "HEAD", jobs: int = 1) -> dict[str, DiffStats]:
    diffs, _ = history_contributions(repo, start=start, jobs=jobs)
    return diffs


def files_contributed_to(repo: HistorySource, *, start: str = "HEAD", jobs: int = 1) -> dict[str, set[str]]:
    _, files = history_contributions(repo, start=start, jobs=jobs)
    return files
