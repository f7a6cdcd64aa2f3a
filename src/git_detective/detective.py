from __future__ import annotations

from pathlib import Path
from typing import Optional

from . import contributions, history
from .errors import VcsError
from .exclusions import NO_EXCLUSIONS, ExclusionFilter
from .git import Repo
from .models import Branch, Commit, DiffStats, FileEntry, GitReference, ProjectStats, RepositoryState, Stats, Tag


class GitDetective:
    """
    Investigate the work done in a git repository.

    Exclusions live on the instance and are passed explicitly to every listing
    and attribution call; two instances over the same repository never share
    them.
    """

    def __init__(self, repo: Repo, exclusions: ExclusionFilter = NO_EXCLUSIONS, jobs: Optional[int] = None) -> None:
        self.repo = repo
        self.exclusions = exclusions
        self.jobs = jobs

    @classmethod
    def open(cls, path: Path | str = ".", **kwargs) -> "GitDetective":
        return cls(Repo.open(path), **kwargs)

    @classmethod
    def clone(cls, url: str, path: Path | str, recursive: bool = False, **kwargs) -> "GitDetective":
        return cls(Repo.clone(url, path, recursive=recursive), **kwargs)

    @property
    def workdir(self) -> Path:
        return self.repo.workdir

    def contributors(self, errors: Optional[list[str]] = None) -> set[str]:
        return self.repo.contributors(errors)

    def commits(self) -> list[Commit]:
        return self.repo.commits()

    def branches(self) -> list[Branch]:
        return self.repo.branches()

    def tags(self) -> list[Tag]:
        return self.repo.tags()

    def state(self) -> RepositoryState:
        return self.repo.state()

    def checkout(self, ref: GitReference) -> None:
        """Detaches HEAD; do not commit on top of it without reattaching."""
        self.repo.checkout(ref)

    def ls(self) -> list[FileEntry]:
        return self.repo.ls(self.exclusions)

    def exclude_file(self, path: str) -> None:
        self.exclusions = self.exclusions.with_path(path)

    def include_file(self, path: str) -> None:
        self.exclusions = self.exclusions.without_path(path)

    def final_contributions(self, errors: Optional[list[str]] = None) -> ProjectStats:
        """See `contributions.final_contributions`: files that fail to blame or read are skipped."""
        return contributions.final_contributions(self.repo, self.exclusions, jobs=self.jobs, errors=errors)

    def final_contributions_file(self, path: Path | str) -> tuple[str, dict[str, Stats]]:
        p = Path(path)
        if p.is_absolute():
            try:
                p = p.resolve().relative_to(self.workdir)
            except ValueError as e:
                raise VcsError(f"{path} is outside {self.workdir}") from e
        return contributions.final_contributions_file(self.repo, p.as_posix())

    def diff_stats(self) -> dict[str, DiffStats]:
        return history.diff_stats(self.repo, jobs=self.jobs or 1)

    def files_contributed_to(self) -> dict[str, set[str]]:
        return history.files_contributed_to(self.repo, jobs=self.jobs or 1)
