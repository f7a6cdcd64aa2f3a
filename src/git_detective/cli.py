from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from pathlib import Path

from .config import exclusions_from_config, jobs_from_config, load_config
from .detective import GitDetective
from .errors import GitDetectiveError
from .models import BranchRef, CommitRef, GitReference, TagRef
from .render import render_diff_stats, render_file_contributions, render_files_contributed_to, render_final_contributions


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="git-detective", description="Inspect who wrote what in a git repository.")
    parser.add_argument("--repo", type=Path, default=Path("."), help="Path inside the repository to inspect.")
    parser.add_argument("--config", type=Path, default=Path("config.json"), help="Path to config.json.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Print skipped files and names to stderr.")
    sub = parser.add_subparsers(dest="command")

    st = sub.add_parser("stats", help="Contribution statistics.")
    st.add_argument("--final", action="store_true", help="Lines at HEAD per contributor and language.")
    st.add_argument("--files", action="store_true", help="Number of files each contributor touched.")
    st.add_argument("--diff", action="store_true", help="Insertions/deletions per contributor across history.")
    st.add_argument("--file", type=str, default="", help="Final contributions for a single file.")
    st.add_argument("--exclude", type=str, nargs="*", default=[], help="Paths to leave out.")
    st.add_argument("--jobs", type=int, default=0, help="Worker threads (0 = one per CPU).")
    st.add_argument("--json", action="store_true", help="Print JSON instead of tables.")

    ls = sub.add_parser("list", help="List commits, branches, tags, contributors or files.")
    ls.add_argument("what", choices=["commits", "branches", "tags", "contributors", "files"])

    cl = sub.add_parser("clone", help="Clone a remote repository.")
    cl.add_argument("url")
    cl.add_argument("path", type=Path)
    cl.add_argument("-r", "--recursive", action="store_true", help="Clone submodules too.")

    co = sub.add_parser("checkout", help="Detach HEAD at a commit, branch or tag.")
    g = co.add_mutually_exclusive_group(required=True)
    g.add_argument("--commit", type=str, default="")
    g.add_argument("--branch", type=str, default="")
    g.add_argument("--tag", type=str, default="")
    return parser


def _print_skipped(errors: list[str], verbose: bool) -> None:
    if not errors:
        return
    print(f"Note: {len(errors)} file(s) could not be blamed or read and were not counted.", file=sys.stderr)
    if verbose:
        for e in errors:
            print(f"  {e}", file=sys.stderr)


def _run_stats(args: argparse.Namespace, gd: GitDetective) -> int:
    as_json = bool(args.json)
    out: dict[str, object] = {}

    if args.file:
        lang, contribs = gd.final_contributions_file(args.file)
        if as_json:
            out["file"] = {"path": args.file, "language": lang, "contributions": {a: dataclasses.asdict(s) for a, s in contribs.items()}}
        else:
            print(render_file_contributions(args.file, lang, contribs))

    show_final = bool(args.final) or not (args.file or args.files or args.diff)
    if show_final:
        errors: list[str] = []
        stats = gd.final_contributions(errors=errors)
        if as_json:
            out["final"] = stats.to_dict()
        else:
            print(render_final_contributions(stats))
        _print_skipped(errors, bool(args.verbose))

    if args.files:
        files = gd.files_contributed_to()
        if as_json:
            out["files"] = {a: sorted(p) for a, p in sorted(files.items())}
        else:
            print(render_files_contributed_to(files))

    if args.diff:
        diffs = gd.diff_stats()
        if as_json:
            out["diff"] = {a: {"insertions": d.insertions, "deletions": d.deletions} for a, d in sorted(diffs.items())}
        else:
            print(render_diff_stats(diffs))

    if as_json:
        print(json.dumps(out, indent=2, sort_keys=False))
    return 0


def _run_list(args: argparse.Namespace, gd: GitDetective) -> int:
    if args.what == "commits":
        for c in gd.commits():
            author = c.author.name_bytes.decode("utf-8", errors="replace")
            print(f"{c.id[:12]}  {c.author.date().date().isoformat()}  {author}  {c.summary() or ''}")
    elif args.what == "branches":
        for b in gd.branches():
            print(f"{'*' if b.is_head else ' '} {b.name}")
    elif args.what == "tags":
        for t in gd.tags():
            print(f"{t.name}  {t.id[:12]}")
    elif args.what == "contributors":
        errors: list[str] = []
        for name in sorted(gd.contributors(errors), key=str.casefold):
            print(name)
        if errors and args.verbose:
            for e in errors:
                print(e, file=sys.stderr)
    elif args.what == "files":
        for f in gd.ls():
            print(f"{f.status:>10}  {f.path}")
    return 0


def _reference(args: argparse.Namespace) -> GitReference:
    if args.commit:
        return CommitRef(args.commit)
    if args.branch:
        return BranchRef(args.branch)
    return TagRef(args.tag)


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    try:
        if args.command == "clone":
            gd = GitDetective.clone(args.url, args.path, recursive=bool(args.recursive))
            print(f"Cloned into {gd.workdir}")
            return 0

        config = load_config(args.config)
        extra = list(getattr(args, "exclude", []) or [])
        gd = GitDetective.open(
            args.repo,
            exclusions=exclusions_from_config(config, extra_paths=extra),
            jobs=jobs_from_config(config, override=int(getattr(args, "jobs", 0) or 0)),
        )

        if args.command == "stats":
            return _run_stats(args, gd)
        if args.command == "list":
            return _run_list(args, gd)
        if args.command == "checkout":
            gd.checkout(_reference(args))
            print("HEAD is now detached; reattach it before committing.")
            return 0
    except (GitDetectiveError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
