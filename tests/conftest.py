from __future__ import annotations

import os
import subprocess
from pathlib import Path

import pytest


def git_env(home: Path, author: str = "Test User", email: str = "test@example.com", date: str = "2025-01-01T00:00:00Z") -> dict[str, str]:
    env = os.environ.copy()
    env["HOME"] = str(home)
    env["GIT_CONFIG_NOSYSTEM"] = "1"
    env["GIT_AUTHOR_NAME"] = author
    env["GIT_AUTHOR_EMAIL"] = email
    env["GIT_COMMITTER_NAME"] = author
    env["GIT_COMMITTER_EMAIL"] = email
    env["GIT_AUTHOR_DATE"] = date
    env["GIT_COMMITTER_DATE"] = date
    return env


def run(cmd: list[str], *, cwd: Path, env: dict[str, str] | None = None) -> str:
    proc = subprocess.run(cmd, cwd=str(cwd), env=env, check=True, capture_output=True, text=True)
    return proc.stdout


def init_repo(repo: Path, home: Path) -> None:
    repo.mkdir(parents=True, exist_ok=True)
    env = git_env(home)
    run(["git", "init", "-q"], cwd=repo, env=env)
    run(["git", "symbolic-ref", "HEAD", "refs/heads/main"], cwd=repo, env=env)
    run(["git", "config", "commit.gpgsign", "false"], cwd=repo, env=env)
    run(["git", "config", "tag.gpgsign", "false"], cwd=repo, env=env)


def commit_files(repo: Path, home: Path, files: dict[str, str | bytes], *, author: str, message: str, date: str) -> None:
    email = f"{author.lower()}@example.com"
    env = git_env(home, author=author, email=email, date=date)
    for rel, content in files.items():
        p = repo / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            p.write_bytes(content)
        else:
            p.write_text(content, encoding="utf-8")
        run(["git", "add", "--", rel], cwd=repo, env=env)
    run(["git", "commit", "-q", "-m", message], cwd=repo, env=env)


@pytest.fixture
def sample_repo(tmp_path: Path) -> Path:
    """
    Three commits:
      1. Alice adds a.py (comment, code, blank, code) and LICENSE; tagged v1
      2. Bob adds b.js (comment, code)
      3. Bob rewrites the last line of a.py
    """
    home = tmp_path / "home"
    home.mkdir()
    repo = tmp_path / "repo"
    init_repo(repo, home)

    commit_files(
        repo,
        home,
        {"a.py": "# header\nimport os\n\nx = 1\n", "LICENSE": "MIT\n"},
        author="Alice",
        message="Initial Commit",
        date="2025-01-01T00:00:00Z",
    )
    run(["git", "tag", "v1"], cwd=repo, env=git_env(home))
    commit_files(repo, home, {"b.js": "// hi\nlet y = 2;\n"}, author="Bob", message="Add b.js", date="2025-01-02T00:00:00Z")
    commit_files(repo, home, {"a.py": "# header\nimport os\n\nx = 2\n"}, author="Bob", message="Bump x", date="2025-01-03T00:00:00Z")
    return repo
