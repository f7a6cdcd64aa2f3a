from __future__ import annotations

import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Optional, Protocol

from .attribution import attribute_file
from .classify import Classification, annotate_file
from .errors import GitDetectiveError
from .exclusions import NO_EXCLUSIONS, ExclusionFilter
from .models import BlameHunk, FileEntry, ProjectStats, Stats

# (absolute path on disk, repository-relative path) -> Classification
Classifier = Callable[[Path, str], Classification]


class BlameSource(Protocol):
    workdir: Path

    def ls(self, exclusions: ExclusionFilter = ...) -> list[FileEntry]: ...

    def blame(self, path: str) -> list[BlameHunk]: ...


def annotate_workdir_file(full_path: Path, rel_path: str) -> Classification:
    return annotate_file(full_path, display_path=rel_path)


def default_jobs() -> int:
    return max(1, os.cpu_count() or 1)


def final_contributions_file(
    repo: BlameSource,
    path: str,
    *,
    classifier: Classifier = annotate_workdir_file,
) -> tuple[str, dict[str, Stats]]:
    """
    Final contributions for a single file: blame at HEAD combined with the
    classification of the file's current content.

    Strict: a blame failure raises `VcsError`, an unreadable file raises
    `IoError`.
    """
    hunks = repo.blame(path)
    classification = classifier(repo.workdir / path, path)
    return attribute_file(hunks, classification)


def _contributions_for(
    repo: BlameSource,
    path: str,
    classifier: Classifier,
    blame_lock: threading.Lock,
) -> tuple[Optional[ProjectStats], str]:
    try:
        # One shared repository handle: blame calls must not overlap.
        with blame_lock:
            hunks = repo.blame(path)
        classification = classifier(repo.workdir / path, path)
        language, contributions = attribute_file(hunks, classification)
    except GitDetectiveError as e:
        return None, f"{path}: {e}"
    return ProjectStats.from_file(language, contributions), ""


def final_contributions(
    repo: BlameSource,
    exclusions: ExclusionFilter = NO_EXCLUSIONS,
    *,
    classifier: Classifier = annotate_workdir_file,
    jobs: Optional[int] = None,
    errors: Optional[list[str]] = None,
) -> ProjectStats:
    """
    Final contributions for every tracked, non-excluded file at HEAD.

    Best effort: a file that cannot be blamed (binary, not in HEAD, git error)
    or read contributes nothing, and the call still succeeds. Such files are
    reported in `errors` when a list is passed; the totals can therefore be
    lower than "every tracked file". Files fall back to "Plain Text" when no
    language is recognised.

    Files are processed on a thread pool; per-file results are merged in
    completion order, which does not affect the result.
    """
    files = [f for f in repo.ls(exclusions) if not exclusions.is_excluded(f.path)]
    workers = jobs if jobs and jobs > 0 else default_jobs()
    blame_lock = threading.Lock()

    total = ProjectStats()
    with ThreadPoolExecutor(max_workers=workers) as ex:
        futs = [ex.submit(_contributions_for, repo, f.path, classifier, blame_lock) for f in files]
        for fut in as_completed(futs):
            stats, err = fut.result()
            if stats is None:
                if errors is not None:
                    errors.append(err)
                continue
            total.merge(stats)
    return total
