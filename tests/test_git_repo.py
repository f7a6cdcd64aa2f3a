from __future__ import annotations

from pathlib import Path

import pytest

from conftest import commit_files, git_env, run
from git_detective.detective import GitDetective
from git_detective.errors import VcsError
from git_detective.git import Repo
from git_detective.models import BranchRef, CommitRef, DiffStats, RepositoryState, Stats, TagRef


def test_open_outside_a_repository_fails(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    plain = tmp_path / "plain"
    plain.mkdir()
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    with pytest.raises(VcsError):
        Repo.open(plain)


def test_open_discovers_toplevel_from_subdirectory(sample_repo: Path) -> None:
    sub = sample_repo / "nested"
    sub.mkdir()
    assert Repo.open(sub).workdir == sample_repo.resolve()


def test_ls_lists_tracked_files_with_status(sample_repo: Path) -> None:
    repo = Repo.open(sample_repo)
    (sample_repo / "a.py").write_text("changed\n", encoding="utf-8")
    (sample_repo / "untracked.txt").write_text("x\n", encoding="utf-8")
    entries = {e.path: e.status for e in repo.ls()}
    assert entries == {"LICENSE": "current", "a.py": "modified", "b.js": "current"}


def test_blame_reports_hunks_per_author(sample_repo: Path) -> None:
    hunks = Repo.open(sample_repo).blame("a.py")
    by_line = {line: h.author() for h in hunks for line in h.line_range}
    assert by_line == {1: "Alice", 2: "Alice", 3: "Alice", 4: "Bob"}


def test_blame_of_untracked_file_fails(sample_repo: Path) -> None:
    (sample_repo / "new.py").write_text("x = 1\n", encoding="utf-8")
    with pytest.raises(VcsError):
        Repo.open(sample_repo).blame("new.py")


def test_walk_history_and_root_diff(sample_repo: Path) -> None:
    repo = Repo.open(sample_repo)
    entries = repo.walk_history()
    assert [e.author() for e in entries] == ["Bob", "Bob", "Alice"]
    root = entries[-1]
    assert root.parent_tree is None
    assert entries[1].parent_tree == root.tree

    summary = repo.diff(root.parent_tree, root.tree)
    assert (summary.insertions, summary.deletions) == (5, 0)
    assert sorted(summary.changed_paths) == ["LICENSE", "a.py"]


def test_final_contributions_end_to_end(sample_repo: Path) -> None:
    gd = GitDetective.open(sample_repo, jobs=4)
    stats = gd.final_contributions()
    assert stats.contribs_by_name("Alice") == {
        "Python": Stats(lines=3, code=1, comments=1, blanks=1),
        "Plain Text": Stats(lines=1, code=1),
    }
    assert stats.contribs_by_name("Bob") == {
        "Python": Stats(lines=1, code=1),
        "JavaScript": Stats(lines=2, code=1, comments=1),
    }
    assert stats.total_lines() == 7

    lang, contribs = gd.final_contributions_file("a.py")
    assert lang == "Python"
    assert contribs == {"Alice": Stats(lines=3, code=1, comments=1, blanks=1), "Bob": Stats(lines=1, code=1)}


def test_binary_and_uncommitted_files_are_skipped(sample_repo: Path, tmp_path: Path) -> None:
    home = tmp_path / "home"
    commit_files(
        sample_repo,
        home,
        {"logo.png": b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\n"},
        author="Carol",
        message="Add logo",
        date="2025-01-04T00:00:00Z",
    )
    (sample_repo / "staged.py").write_text("y = 1\n", encoding="utf-8")
    run(["git", "add", "staged.py"], cwd=sample_repo, env=git_env(home))

    gd = GitDetective.open(sample_repo)
    errors: list[str] = []
    stats = gd.final_contributions(errors=errors)
    assert "Carol" not in stats
    assert stats.total_lines() == 7
    assert sorted(e.split(":", 1)[0] for e in errors) == ["logo.png", "staged.py"]

    with pytest.raises(VcsError):
        gd.final_contributions_file("logo.png")


def test_exclude_and_include_file(sample_repo: Path) -> None:
    gd = GitDetective.open(sample_repo)
    before = gd.final_contributions()

    gd.exclude_file("b.js")
    assert [e.path for e in gd.ls()] == ["LICENSE", "a.py"]
    excluded = gd.final_contributions()
    assert excluded.contribs_by_name("Bob") == {"Python": Stats(lines=1, code=1)}

    gd.include_file("b.js")
    assert gd.final_contributions() == before


def test_diff_stats_and_files_contributed_to(sample_repo: Path) -> None:
    gd = GitDetective.open(sample_repo)
    assert gd.diff_stats() == {
        "Alice": DiffStats(insertions=5, deletions=0),
        "Bob": DiffStats(insertions=3, deletions=1),
    }
    assert gd.files_contributed_to() == {"Alice": {"a.py", "LICENSE"}, "Bob": {"a.py", "b.js"}}

    parallel = GitDetective.open(sample_repo, jobs=3)
    assert parallel.diff_stats() == gd.diff_stats()


def test_commits_branches_tags_contributors(sample_repo: Path, tmp_path: Path) -> None:
    run(["git", "tag", "-a", "v2", "-m", "release 2"], cwd=sample_repo, env=git_env(tmp_path / "home", author="Releaser"))
    gd = GitDetective.open(sample_repo)

    commits = gd.commits()
    assert len(commits) == 3
    first = commits[-1]
    assert "Initial Commit" in first.message()
    assert first.summary() == "Initial Commit"
    assert first.author.name() == "Alice"
    assert first.author.email() == "alice@example.com"
    assert first.author.date().year == 2025
    assert first.parents == ()
    assert commits[0].parents == (commits[1].id,)

    branches = gd.branches()
    assert [(b.name, b.is_head) for b in branches] == [("main", True)]
    assert branches[0].id == commits[0].id

    tags = {t.name: t for t in gd.tags()}
    assert tags["v1"].id == first.id
    assert tags["v1"].message is None
    assert tags["v2"].id == commits[0].id
    assert "release 2" in (tags["v2"].message or "")
    assert tags["v2"].tagger is not None and tags["v2"].tagger.name() == "Releaser"

    assert gd.contributors() == {"Alice", "Bob"}


def test_checkout_tag_then_branch(sample_repo: Path) -> None:
    gd = GitDetective.open(sample_repo)
    assert gd.state() is RepositoryState.CLEAN
    head = gd.commits()[0].id

    gd.checkout(TagRef("v1"))
    stats = gd.final_contributions()
    assert stats.contributors() == ["Alice"]
    assert stats.contribs_by_name("Alice") == {
        "Python": Stats(lines=4, code=2, comments=1, blanks=1),
        "Plain Text": Stats(lines=1, code=1),
    }

    gd.checkout(BranchRef("main"))
    assert gd.commits()[0].id == head

    oid, tree = gd.repo.resolve(CommitRef(head))
    assert oid == head and len(tree) == len(head)


def test_checkout_refuses_unclean_state(sample_repo: Path) -> None:
    repo = Repo.open(sample_repo)
    head = repo.commits()[0].id
    (repo.git_dir() / "MERGE_HEAD").write_text(head + "\n", encoding="utf-8")
    assert repo.state() is RepositoryState.MERGE
    with pytest.raises(VcsError):
        repo.checkout(TagRef("v1"))


def test_resolve_unknown_reference_fails(sample_repo: Path) -> None:
    with pytest.raises(VcsError):
        Repo.open(sample_repo).resolve(BranchRef("does-not-exist"))


def test_single_file_by_absolute_path(sample_repo: Path, tmp_path: Path) -> None:
    gd = GitDetective.open(sample_repo)
    assert gd.final_contributions_file(sample_repo / "b.js") == ("JavaScript", {"Bob": Stats(lines=2, code=1, comments=1)})

    outside = tmp_path / "elsewhere.py"
    outside.write_text("x = 1\n", encoding="utf-8")
    with pytest.raises(VcsError):
        gd.final_contributions_file(outside)
