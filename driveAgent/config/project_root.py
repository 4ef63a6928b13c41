"""Project root path detection - works regardless of working directory."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path


@lru_cache(maxsize=1)
def get_project_root() -> Path:
    """Get absolute path to project root directory.

    Finds the directory containing the 'driveAgent' package, regardless of the
    current working directory.

    Example:
        >>> root = get_project_root()
        >>> policy = root / "driveAgent" / "config" / "capability_policy.yaml"
    """
    # project_root.py -> config/ -> driveAgent/ -> project_root/
    project_root = Path(__file__).resolve().parent.parent.parent

    if not (project_root / "driveAgent").exists():
        raise RuntimeError(
            f"Could not locate project root. Expected 'driveAgent' directory at {project_root}"
        )

    return project_root


def resolve_project_path(relative_path: str | Path) -> Path:
    """Resolve a path relative to project root.

    Absolute paths are returned unchanged.

    Example:
        >>> resolve_project_path("data/conversations.db")
    """
    path = Path(relative_path)
    if path.is_absolute():
        return path
    return get_project_root() / path


__all__ = ["get_project_root", "resolve_project_path"]
