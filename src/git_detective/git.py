from __future__ import annotations

import re
import subprocess
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from .errors import UrlError, VcsError
from .exclusions import NO_EXCLUSIONS, ExclusionFilter
from .models import (
    BlameHunk,
    Branch,
    BranchRef,
    Commit,
    CommitRef,
    DiffSummary,
    FileEntry,
    GitReference,
    HistoryEntry,
    RepositoryState,
    Signature,
    Tag,
    TagRef,
)

_BLAME_HEADER = re.compile(rb"^([0-9a-f]{40}|[0-9a-f]{64}) (\d+) (\d+)(?: (\d+))?$")

STATUS_NAMES = {
    "M": "modified",
    "T": "typechange",
    "A": "added",
    "D": "deleted",
    "R": "renamed",
    "C": "copied",
    "U": "conflicted",
}


def run_git(args: list[str], cwd: Path, timeout_s: int = 300) -> tuple[int, str, str]:
    proc = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        timeout=timeout_s,
    )
    return proc.returncode, proc.stdout, proc.stderr


def run_git_bytes(args: list[str], cwd: Path, timeout_s: int = 300, stdin: bytes | None = None) -> tuple[int, bytes, str]:
    # Author names and paths are not guaranteed to be UTF-8, so keep stdout raw.
    proc = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        input=stdin,
        capture_output=True,
        timeout=timeout_s,
    )
    return proc.returncode, proc.stdout, proc.stderr.decode("utf-8", errors="replace")


def validate_url(url: str) -> str:
    u = (url or "").strip()
    if not u:
        raise UrlError("empty repository URL")
    # scp-like syntax: git@github.com:org/repo.git
    if "://" not in u and ":" in u and "@" in u.split(":", 1)[0]:
        left, path = u.split(":", 1)
        if left.split("@", 1)[1] and path:
            return u
        raise UrlError(f"malformed repository URL: {url!r}")
    try:
        parsed = urlparse(u)
    except ValueError as e:
        raise UrlError(f"malformed repository URL: {url!r}") from e
    if parsed.scheme == "file" and parsed.path:
        return u
    if parsed.scheme not in ("http", "https", "ssh", "git", "git+ssh", "ssh+git") or not parsed.netloc:
        raise UrlError(f"malformed repository URL: {url!r}")
    return u


def parse_blame_porcelain(out: bytes, path: str = "") -> list[BlameHunk]:
    """
    Turn `git blame --porcelain` output into hunks.

    A hunk header carries the line count (4 fields); continuation headers for
    the same hunk carry 3. Commit metadata (`author ...`) is printed only the
    first time a commit appears, so authors are resolved after the full pass.
    """
    authors: dict[bytes, bytes] = {}
    pending: list[tuple[bytes, int, int]] = []
    current = b""

    for line in out.split(b"\n"):
        if line.startswith(b"\t"):
            if b"\0" in line:
                raise VcsError(f"cannot blame binary file: {path}")
            continue
        m = _BLAME_HEADER.match(line)
        if m:
            current = m.group(1)
            if m.group(4) is not None:
                pending.append((current, int(m.group(3)), int(m.group(4))))
            continue
        if line.startswith(b"author ") and current not in authors:
            authors[current] = line[len(b"author ") :]

    return [BlameHunk(start=start, lines=n, author_name=authors.get(sha, b"")) for sha, start, n in pending]


def parse_numstat_z(out: bytes) -> DiffSummary:
    insertions = 0
    deletions = 0
    paths: list[str] = []
    for rec in out.split(b"\0"):
        if not rec:
            continue
        parts = rec.split(b"\t", 2)
        if len(parts) != 3:
            continue
        added_s, deleted_s, raw_path = parts
        # binary files report `-` for both counts
        if added_s != b"-" and deleted_s != b"-":
            try:
                insertions += int(added_s)
                deletions += int(deleted_s)
            except ValueError:
                continue
        paths.append(raw_path.decode("utf-8", errors="surrogateescape"))
    return DiffSummary(insertions=insertions, deletions=deletions, changed_paths=tuple(paths))


def parse_status_z(out: bytes) -> dict[str, str]:
    statuses: dict[str, str] = {}
    tokens = out.split(b"\0")
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        i += 1
        if len(tok) < 4:
            continue
        xy = tok[:2].decode("ascii", errors="replace")
        path = tok[3:].decode("utf-8", errors="surrogateescape")
        code = xy[0] if xy[0] != " " else xy[1]
        statuses[path] = STATUS_NAMES.get(code, "changed")
        if xy[0] in "RC":
            i += 1  # rename/copy source path follows
    return statuses


class Repo:
    """A git working tree, driven through the `git` executable."""

    def __init__(self, workdir: Path) -> None:
        self.workdir = workdir
        self._empty_tree: Optional[str] = None

    @classmethod
    def open(cls, path: Path | str) -> "Repo":
        candidate = Path(path)
        if not candidate.is_dir():
            raise VcsError(f"not a directory: {candidate}")
        try:
            code, out, err = run_git(["rev-parse", "--show-toplevel"], cwd=candidate)
        except OSError as e:
            raise VcsError(f"failed to run git: {e}") from e
        if code != 0 or not out.strip():
            raise VcsError(f"could not find a git repository at {candidate}: {err.strip()[:500]}")
        return cls(Path(out.strip()).resolve())

    @classmethod
    def clone(cls, url: str, path: Path | str, recursive: bool = False) -> "Repo":
        valid = validate_url(url)
        dest = Path(path).resolve()
        args = ["clone", "--quiet"]
        if recursive:
            args.append("--recurse-submodules")
        args.extend([valid, str(dest)])
        try:
            code, _, err = run_git(args, cwd=dest.parent if dest.parent.exists() else Path.cwd(), timeout_s=3600)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise VcsError(f"failed to clone {valid}: {e}") from e
        if code != 0:
            raise VcsError(f"failed to clone {valid}: {err.strip()[:500]}")
        return cls.open(dest)

    def _git(self, args: list[str], timeout_s: int = 300) -> str:
        try:
            code, out, err = run_git(args, cwd=self.workdir, timeout_s=timeout_s)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise VcsError(f"git {args[0]} failed: {e}") from e
        if code != 0:
            raise VcsError(f"git {args[0]} exited {code}: {err.strip()[:500]}")
        return out

    def _git_bytes(self, args: list[str], timeout_s: int = 300, stdin: bytes | None = None) -> bytes:
        try:
            code, out, err = run_git_bytes(args, cwd=self.workdir, timeout_s=timeout_s, stdin=stdin)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise VcsError(f"git {args[0]} failed: {e}") from e
        if code != 0:
            raise VcsError(f"git {args[0]} exited {code}: {err.strip()[:500]}")
        return out

    def git_dir(self) -> Path:
        return Path(self._git(["rev-parse", "--absolute-git-dir"]).strip())

    def empty_tree(self) -> str:
        if self._empty_tree is None:
            self._empty_tree = self._git_bytes(["hash-object", "-t", "tree", "--stdin"], stdin=b"").decode("ascii").strip()
        return self._empty_tree

    def ls(self, exclusions: ExclusionFilter = NO_EXCLUSIONS, include_excluded: bool = False) -> list[FileEntry]:
        """Files tracked in the index, with their working tree status."""
        listed = self._git_bytes(["ls-files", "-z"])
        statuses = parse_status_z(self._git_bytes(["status", "--porcelain=v1", "-z", "--untracked-files=no"]))
        entries = [
            FileEntry(path=p, status=statuses.get(p, "current"))
            for p in (raw.decode("utf-8", errors="surrogateescape") for raw in listed.split(b"\0") if raw)
        ]
        marked = exclusions.mark(entries)
        if include_excluded:
            return marked
        return [e for e in marked if not e.excluded]

    def blame(self, path: str) -> list[BlameHunk]:
        out = self._git_bytes(["blame", "--porcelain", "HEAD", "--", path])
        return parse_blame_porcelain(out, path)

    def diff(self, old_tree: Optional[str], new_tree: str) -> DiffSummary:
        base = old_tree if old_tree is not None else self.empty_tree()
        out = self._git_bytes(["diff-tree", "-r", "--numstat", "--no-renames", "-z", base, new_tree])
        return parse_numstat_z(out)

    def walk_history(self, start: str = "HEAD") -> list[HistoryEntry]:
        out = self._git_bytes(["log", "--format=%H%x1f%T%x1f%P%x1f%an%x1e", start, "--"], timeout_s=3600)
        rows: list[tuple[str, str, list[str], bytes]] = []
        trees: dict[str, str] = {}
        for rec in out.split(b"\x1e"):
            rec = rec.strip(b"\n")
            if not rec:
                continue
            parts = rec.split(b"\x1f", 3)
            if len(parts) != 4:
                raise VcsError(f"unexpected git log record: {rec[:200]!r}")
            sha = parts[0].decode("ascii")
            tree = parts[1].decode("ascii")
            parents = parts[2].decode("ascii").split()
            rows.append((sha, tree, parents, parts[3]))
            trees[sha] = tree

        entries: list[HistoryEntry] = []
        for sha, tree, parents, author in rows:
            parent_tree: Optional[str] = None
            if parents:
                first = parents[0]
                parent_tree = trees.get(first) or self._git(["rev-parse", "--verify", f"{first}^{{tree}}"]).strip()
            entries.append(HistoryEntry(commit_id=sha, author_name=author, parent_tree=parent_tree, tree=tree))
        return entries

    def state(self) -> RepositoryState:
        gd = self.git_dir()
        if (gd / "rebase-merge").is_dir():
            if (gd / "rebase-merge" / "interactive").exists():
                return RepositoryState.REBASE_INTERACTIVE
            return RepositoryState.REBASE_MERGE
        if (gd / "rebase-apply").is_dir():
            if (gd / "rebase-apply" / "rebasing").exists():
                return RepositoryState.REBASE
            if (gd / "rebase-apply" / "applying").exists():
                return RepositoryState.APPLY_MAILBOX
            return RepositoryState.APPLY_MAILBOX_OR_REBASE
        if (gd / "MERGE_HEAD").exists():
            return RepositoryState.MERGE
        sequencer = (gd / "sequencer" / "todo").exists()
        if (gd / "REVERT_HEAD").exists():
            return RepositoryState.REVERT_SEQUENCE if sequencer else RepositoryState.REVERT
        if (gd / "CHERRY_PICK_HEAD").exists():
            return RepositoryState.CHERRY_PICK_SEQUENCE if sequencer else RepositoryState.CHERRY_PICK
        if (gd / "BISECT_LOG").exists():
            return RepositoryState.BISECT
        return RepositoryState.CLEAN

    def contributors(self, errors: list[str] | None = None) -> set[str]:
        """Author names across history. Names that are not UTF-8 are skipped."""
        out = self._git_bytes(["log", "--format=%an%x00", "HEAD", "--"], timeout_s=3600)
        names: set[str] = set()
        for raw in out.split(b"\0"):
            raw = raw.strip(b"\n")
            if not raw:
                continue
            try:
                names.add(raw.decode("utf-8"))
            except UnicodeDecodeError:
                if errors is not None:
                    errors.append(f"skipped non-UTF-8 author name: {raw!r}")
        return names

    def commits(self) -> list[Commit]:
        fmt = "%H%x1f%T%x1f%P%x1f%an%x1f%ae%x1f%at%x1f%cn%x1f%ce%x1f%ct%x1f%B%x1e"
        out = self._git_bytes(["log", f"--format={fmt}", "HEAD", "--"], timeout_s=3600)
        commits: list[Commit] = []
        for rec in out.split(b"\x1e"):
            rec = rec.lstrip(b"\n")
            if not rec:
                continue
            parts = rec.split(b"\x1f", 9)
            if len(parts) != 10:
                raise VcsError(f"unexpected git log record: {rec[:200]!r}")
            sha, tree, parents, an, ae, at, cn, ce, ct, body = parts
            commits.append(
                Commit(
                    id=sha.decode("ascii"),
                    tree=tree.decode("ascii"),
                    parents=tuple(parents.decode("ascii").split()),
                    author=Signature(an, ae, int(at or b"0")),
                    committer=Signature(cn, ce, int(ct or b"0")),
                    message_bytes=body,
                )
            )
        return commits

    def branches(self) -> list[Branch]:
        out = self._git(["for-each-ref", "--format=%(refname:short)%09%(objectname)%09%(HEAD)", "refs/heads"])
        branches: list[Branch] = []
        for line in out.splitlines():
            parts = line.split("\t")
            if len(parts) != 3:
                continue
            branches.append(Branch(name=parts[0], id=parts[1], is_head=parts[2].strip() == "*"))
        return branches

    def tags(self) -> list[Tag]:
        fmt = "%(refname:short)%1f%(objectname)%1f%(*objectname)%1f%(taggername)%1f%(taggeremail)%1f%(taggerdate:unix)%1f%(contents)%1e"
        out = self._git_bytes(["for-each-ref", f"--format={fmt}", "refs/tags"])
        tags: list[Tag] = []
        for rec in out.split(b"\x1e"):
            rec = rec.lstrip(b"\n")
            if not rec:
                continue
            parts = rec.split(b"\x1f", 6)
            if len(parts) != 7:
                continue
            name, obj, peeled, tn, te, td, contents = parts
            annotated = bool(peeled)
            tagger = None
            if annotated and tn:
                tagger = Signature(tn, te.strip(b"<>"), int(td or b"0"))
            tags.append(
                Tag(
                    name=name.decode("utf-8", errors="replace"),
                    id=(peeled or obj).decode("ascii"),
                    message=contents.decode("utf-8", errors="replace") if annotated else None,
                    tagger=tagger,
                )
            )
        return tags

    def resolve(self, ref: GitReference) -> tuple[str, str]:
        """Object id and tree of a commit, branch or tag."""
        if isinstance(ref, CommitRef):
            candidates = [ref.id]
        elif isinstance(ref, BranchRef):
            candidates = [f"refs/heads/{ref.name}", f"refs/remotes/{ref.name}"]
        elif isinstance(ref, TagRef):
            candidates = [f"refs/tags/{ref.name}"]
        else:
            raise TypeError(f"not a git reference: {ref!r}")

        last_err: Optional[VcsError] = None
        for cand in candidates:
            try:
                oid = self._git(["rev-parse", "--verify", "--quiet", f"{cand}^{{commit}}"]).strip()
            except VcsError as e:
                last_err = e
                continue
            tree = self._git(["rev-parse", "--verify", f"{oid}^{{tree}}"]).strip()
            return oid, tree
        raise VcsError(f"reference does not exist: {ref!r}") from last_err

    def checkout(self, ref: GitReference) -> None:
        """Detach HEAD at `ref`. Only allowed when no merge/rebase/etc. is in progress."""
        state = self.state()
        if state is not RepositoryState.CLEAN:
            raise VcsError(f"cannot checkout while repository state is {state.value}")
        oid, _ = self.resolve(ref)
        self._git(["checkout", "--quiet", "--detach", oid])
