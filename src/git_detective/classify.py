from __future__ import annotations

import dataclasses
import re
from pathlib import Path

from .errors import IoError
from .models import LineKind

PLAIN_TEXT = "Plain Text"

_STRING_LITERAL = re.compile(r"'(?:\\.|[^'\\])*'" + r'|"(?:\\.|[^"\\])*"')

_BY_EXT = {
    ".py": "Python",
    ".pyi": "Python",
    ".ipynb": "Jupyter",
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".java": "Java",
    ".kt": "Kotlin",
    ".kts": "Kotlin",
    ".swift": "Swift",
    ".go": "Go",
    ".rs": "Rust",
    ".php": "PHP",
    ".rb": "Ruby",
    ".cs": "C#",
    ".c": "C",
    ".h": "C Header",
    ".cpp": "C++",
    ".cc": "C++",
    ".cxx": "C++",
    ".hpp": "C++ Header",
    ".hh": "C++ Header",
    ".mm": "Objective-C++",
    ".m": "Objective-C",
    ".scala": "Scala",
    ".dart": "Dart",
    ".lua": "Lua",
    ".hs": "Haskell",
    ".pl": "Perl",
    ".r": "R",
    ".ex": "Elixir",
    ".exs": "Elixir",
    ".erl": "Erlang",
    ".el": "Emacs Lisp",
    ".clj": "Clojure",
    ".vim": "Vim Script",
    ".tex": "TeX",
    ".sql": "SQL",
    ".tf": "HCL",
    ".yml": "YAML",
    ".yaml": "YAML",
    ".json": "JSON",
    ".toml": "TOML",
    ".ini": "INI",
    ".cfg": "INI",
    ".md": "Markdown",
    ".rst": "reStructuredText",
    ".html": "HTML",
    ".htm": "HTML",
    ".xml": "XML",
    ".svg": "SVG",
    ".css": "CSS",
    ".scss": "Sass",
    ".sass": "Sass",
    ".less": "LESS",
    ".sh": "Shell",
    ".bash": "BASH",
    ".zsh": "Zsh",
    ".fish": "Fish",
    ".ps1": "PowerShell",
    ".bat": "Batch",
    ".cmd": "Batch",
    ".gradle": "Gradle",
    ".proto": "Protocol Buffers",
    ".txt": PLAIN_TEXT,
}

_BY_NAME = {
    "dockerfile": "Dockerfile",
    "makefile": "Makefile",
    "gnumakefile": "Makefile",
    "cmakelists.txt": "CMake",
    "rakefile": "Rake",
    "gemfile": "Ruby",
}

_C_LIKE = (("//",), (("/*", "*/"),))
_HASH = (("#",), ())
_MARKUP = ((), (("<!--", "-->"),))

# language -> (line comment markers, block comment (start, end) pairs)
COMMENT_SYNTAX: dict[str, tuple[tuple[str, ...], tuple[tuple[str, str], ...]]] = {
    "C": _C_LIKE,
    "C Header": _C_LIKE,
    "C++": _C_LIKE,
    "C++ Header": _C_LIKE,
    "C#": _C_LIKE,
    "Java": _C_LIKE,
    "JavaScript": _C_LIKE,
    "TypeScript": _C_LIKE,
    "Go": _C_LIKE,
    "Rust": _C_LIKE,
    "Kotlin": _C_LIKE,
    "Swift": _C_LIKE,
    "Scala": _C_LIKE,
    "Dart": _C_LIKE,
    "Objective-C": _C_LIKE,
    "Objective-C++": _C_LIKE,
    "Gradle": _C_LIKE,
    "Protocol Buffers": _C_LIKE,
    "Sass": _C_LIKE,
    "LESS": _C_LIKE,
    "CSS": ((), (("/*", "*/"),)),
    "PHP": (("//", "#"), (("/*", "*/"),)),
    "HCL": (("#", "//"), (("/*", "*/"),)),
    "Python": (("#",), (('"""', '"""'), ("'''", "'''"))),
    "Ruby": (("#",), (("=begin", "=end"),)),
    "Rake": (("#",), (("=begin", "=end"),)),
    "Perl": (("#",), (("=pod", "=cut"),)),
    "PowerShell": (("#",), (("<#", "#>"),)),
    "Shell": _HASH,
    "BASH": _HASH,
    "Zsh": _HASH,
    "Fish": _HASH,
    "Makefile": _HASH,
    "CMake": _HASH,
    "Dockerfile": _HASH,
    "YAML": _HASH,
    "TOML": _HASH,
    "R": _HASH,
    "Elixir": _HASH,
    "INI": (("#", ";"), ()),
    "SQL": (("--",), (("/*", "*/"),)),
    "Lua": (("--",), (("--[[", "]]"),)),
    "Haskell": (("--",), (("{-", "-}"),)),
    "Erlang": (("%",), ()),
    "TeX": (("%",), ()),
    "Emacs Lisp": ((";",), ()),
    "Clojure": ((";",), ()),
    "Vim Script": (('"',), ()),
    "Batch": (("::", "REM ", "rem ", "@REM ", "@rem "), ()),
    "HTML": _MARKUP,
    "XML": _MARKUP,
    "SVG": _MARKUP,
    "Markdown": _MARKUP,
}


@dataclasses.dataclass(frozen=True)
class Classification:
    language: str
    line_kinds: dict[int, LineKind]  # 1-based line number -> kind


def language_for_path(path: str) -> str:
    p = path.replace("\\", "/")
    base = p.rsplit("/", 1)[-1]
    lower = base.lower()
    if lower in _BY_NAME:
        return _BY_NAME[lower]
    if lower.startswith("dockerfile."):
        return "Dockerfile"
    ext = Path(lower).suffix
    return _BY_EXT.get(ext, PLAIN_TEXT)


def _split_lines(text: str) -> list[str]:
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [ln[:-1] if ln.endswith("\r") else ln for ln in lines]


def _open_block(code: str, line_markers: tuple[str, ...], block_markers: tuple[tuple[str, str], ...]) -> str | None:
    """
    End marker of a block comment left open at the end of `code`, or None.

    Markers inside string literals and after a line comment do not count.
    """
    text = _STRING_LITERAL.sub('""', code)
    pos = 0
    while True:
        opener: tuple[int, str, str] | None = None
        for start, end in block_markers:
            if start == end:
                continue
            i = text.find(start, pos)
            if i >= 0 and (opener is None or i < opener[0]):
                opener = (i, start, end)
        if opener is None:
            return None
        # Lua's `--[[` starts with `--`, so a tie goes to the block opener.
        if any(0 <= text.find(m, pos) < opener[0] for m in line_markers):
            return None
        at, start, end = opener
        close = text.find(end, at + len(start))
        if close < 0:
            return end
        pos = close + len(end)


def classify_lines(language: str, lines: list[str]) -> dict[int, LineKind]:
    line_markers, block_markers = COMMENT_SYNTAX.get(language, ((), ()))
    comment_starts = tuple(line_markers) + tuple(start for start, _ in block_markers)
    kinds: dict[int, LineKind] = {}
    block_end: str | None = None

    def after_close(num: int, rest: str) -> None:
        nonlocal block_end
        kinds[num] = LineKind.CODE if rest and not rest.startswith(comment_starts) else LineKind.COMMENT
        block_end = _open_block(rest, line_markers, block_markers)

    for num, raw in enumerate(lines, start=1):
        s = raw.strip()

        if block_end is not None:
            idx = s.find(block_end)
            if idx < 0:
                kinds[num] = LineKind.COMMENT
                continue
            after_close(num, s[idx + len(block_end) :].strip())
            continue

        if not s:
            kinds[num] = LineKind.BLANK
            continue

        # Block markers first: Lua's `--[[` also starts with its line marker.
        opened = False
        for start, end in block_markers:
            if not s.startswith(start):
                continue
            opened = True
            close = s.find(end, len(start))
            if close < 0:
                block_end = end
                kinds[num] = LineKind.COMMENT
            else:
                after_close(num, s[close + len(end) :].strip())
            break
        if opened:
            continue

        if line_markers and s.startswith(line_markers):
            kinds[num] = LineKind.COMMENT
            continue

        kinds[num] = LineKind.CODE
        # e.g. `int x; /* note`
        block_end = _open_block(s, line_markers, block_markers)

    return kinds


def classify(path: str, data: bytes) -> Classification:
    language = language_for_path(path)
    text = data.decode("utf-8", errors="replace")
    return Classification(language=language, line_kinds=classify_lines(language, _split_lines(text)))


def annotate_file(path: Path | str, *, display_path: str | None = None) -> Classification:
    """Read a file from disk and classify each of its lines. Read failures raise `IoError`."""
    p = Path(path)
    shown = display_path if display_path is not None else str(path)
    try:
        data = p.read_bytes()
    except OSError as e:
        raise IoError(shown, e.strerror or str(e)) from e
    return classify(shown, data)
