"""Model slot registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Literal, Optional

ModelKey = Literal["base", "chat"]


@dataclass(frozen=True, slots=True)
class ModelSpec:
    """Normalized description of an LLM endpoint."""

    key: ModelKey
    model_id: str
    can_tools: bool
    context_window: int  # Maximum context window size in tokens


class ModelRegistry:
    """Central registry for model specs and phase-based selection."""

    def __init__(self, specs: Optional[Iterable[ModelSpec]] = None) -> None:
        self._specs: Dict[str, ModelSpec] = {}
        if specs:
            for spec in specs:
                self.register(spec)

    def register(self, spec: ModelSpec) -> None:
        self._specs[spec.key] = spec

    def get(self, key: str) -> ModelSpec:
        if key not in self._specs:
            raise KeyError(f"Unknown model key: {key}")
        return self._specs[key]

    def prefer(self, *, phase: str, require_tools: bool) -> ModelSpec:
        """Choose a model spec for a phase.

        Tool-calling phases (the agent loop) use ``chat``; tool-free phases
        (route, classify, plan, summarize) use ``base``.
        """
        if require_tools:
            return self.get("chat")
        return self.get("base")


def build_default_registry(model_configs: Dict[str, Dict[str, object]]) -> ModelRegistry:
    """Instantiate the registry from ``resolve_model_configs`` output."""

    return ModelRegistry(
        [
            ModelSpec(
                key="base",
                model_id=str(model_configs["base"]["id"]),
                can_tools=False,
                context_window=int(model_configs["base"]["context_window"]),
            ),
            ModelSpec(
                key="chat",
                model_id=str(model_configs["chat"]["id"]),
                can_tools=True,
                context_window=int(model_configs["chat"]["context_window"]),
            ),
        ]
    )
