"""Model management utilities."""

from .registry import ModelKey, ModelRegistry, ModelSpec, build_default_registry

__all__ = ["ModelKey", "ModelRegistry", "ModelSpec", "build_default_registry"]
