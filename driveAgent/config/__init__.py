"""Configuration loading for driveAgent."""

from .project_root import get_project_root, resolve_project_path
from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "get_project_root", "resolve_project_path"]
