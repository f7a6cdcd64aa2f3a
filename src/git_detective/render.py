from __future__ import annotations

from .models import DiffStats, ProjectStats, Stats


def trunc(s: str, max_len: int) -> str:
    if len(s) <= max_len:
        return s
    if max_len <= 1:
        return s[:max_len]
    return s[: max_len - 1] + "…"


def _table(header: list[str], rows: list[list[str]], first_width: int = 20, width: int = 12) -> list[str]:
    def fmt(cells: list[str]) -> str:
        first = trunc(cells[0], first_width).ljust(first_width)
        rest = " ".join(c.rjust(width) for c in cells[1:])
        return f"{first} {rest}".rstrip()

    sep = "-" * (first_width + (width + 1) * (len(header) - 1))
    lines = [sep, fmt(header), sep]
    lines.extend(fmt(r) for r in rows)
    lines.append(sep)
    return lines


def _stats_row(label: str, st: Stats) -> list[str]:
    return [label, str(st.lines), str(st.code), str(st.comments), str(st.blanks)]


def render_final_contributions(stats: ProjectStats) -> str:
    lines: list[str] = []
    for author, langs in sorted(stats, key=lambda kv: kv[0].casefold()):
        lines.append(f"{author}'s Contributions")
        total = Stats()
        rows: list[list[str]] = []
        for lang, st in sorted(langs.items(), key=lambda kv: (-kv[1].lines, kv[0])):
            total = total + st
            rows.append(_stats_row(lang, st))
        rows.append(_stats_row("Total", total))
        lines.extend(_table(["Language", "Lines", "Code", "Comments", "Blanks"], rows))
        lines.append("")
    lines.append(f"Total lines: {stats.total_lines()}")
    return "\n".join(lines)


def render_file_contributions(path: str, language: str, contributions: dict[str, Stats]) -> str:
    rows = [_stats_row(author, st) for author, st in sorted(contributions.items(), key=lambda kv: (-kv[1].lines, kv[0]))]
    lines = [f"{path} ({language})"]
    lines.extend(_table(["Contributor", "Lines", "Code", "Comments", "Blanks"], rows))
    return "\n".join(lines)


def render_diff_stats(diffs: dict[str, DiffStats]) -> str:
    rows = [
        [author, str(d.insertions), str(d.deletions)]
        for author, d in sorted(diffs.items(), key=lambda kv: (-kv[1].changed, kv[0]))
    ]
    return "\n".join(_table(["Contributor", "Additions", "Deletions"], rows))


def render_files_contributed_to(files: dict[str, set[str]]) -> str:
    rows = [[author, str(len(paths))] for author, paths in sorted(files.items(), key=lambda kv: (-len(kv[1]), kv[0]))]
    return "\n".join(_table(["Contributor", "Files"], rows))
