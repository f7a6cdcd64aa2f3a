from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from .exclusions import ExclusionFilter


def load_config(config_path: Path) -> dict:
    if not config_path.exists():
        return {}
    return json.loads(config_path.read_text(encoding="utf-8"))


def save_config(config_path: Path, config: dict) -> None:
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(config, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def exclusions_from_config(config: dict, extra_paths: Optional[list[str]] = None) -> ExclusionFilter:
    paths = [str(p) for p in (config.get("exclude_paths") or [])]
    paths.extend(extra_paths or [])
    return ExclusionFilter.of(
        paths=paths,
        prefixes=list(config.get("exclude_path_prefixes") or []),
        globs=list(config.get("exclude_path_globs") or []),
    )


def jobs_from_config(config: dict, override: int = 0) -> Optional[int]:
    if override and override > 0:
        return override
    raw = config.get("jobs")
    try:
        jobs = int(raw) if raw is not None else 0
    except (TypeError, ValueError):
        jobs = 0
    return jobs if jobs > 0 else None
