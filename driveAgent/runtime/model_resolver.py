"""Default model resolver wiring using environment-derived settings.

Converts settings into a resolver function that creates ChatOpenAI instances on
demand. The resolver pattern allows lazy instantiation of models and supports
dependency injection for testing.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional, TypedDict

from langchain_openai import ChatOpenAI

from driveAgent.config.settings import Settings
from driveAgent.utils.error_handler import BackendUnavailableError

ModelResolver = Callable[[str], object]

REQUEST_TIMEOUT_SECONDS = 60


class ModelConfig(TypedDict):
    id: str
    api_key: Optional[str]
    base_url: Optional[str]
    context_window: int


def resolve_model_configs(settings: Settings) -> Dict[str, ModelConfig]:
    """Build normalized model configs (id + credentials) for the base and chat slots."""

    return {
        "base": {
            "id": settings.models.base,
            "api_key": settings.models.base_api_key,
            "base_url": settings.models.base_base_url,
            "context_window": settings.models.base_context_window,
        },
        "chat": {
            "id": settings.models.chat,
            "api_key": settings.models.chat_api_key,
            "base_url": settings.models.chat_base_url,
            "context_window": settings.models.chat_context_window,
        },
    }


def _chat_kwargs(model: str, api_key: Optional[str], base_url: Optional[str], temperature: float) -> Dict[str, object]:
    if not api_key:
        raise BackendUnavailableError()
    kwargs: Dict[str, object] = {
        "model": model,
        "api_key": api_key,
        "temperature": temperature,
        "timeout": REQUEST_TIMEOUT_SECONDS,
    }
    if base_url:
        kwargs["base_url"] = base_url
    return kwargs


def build_model_resolver(model_configs: Dict[str, ModelConfig]) -> ModelResolver:
    """Construct a resolver that returns ChatOpenAI clients by model id.

    Slots sharing a model id resolve to the chat slot's configuration.

    Raises (when called):
        KeyError: If the requested model id is not configured
        BackendUnavailableError: If the API key for the model is missing

    Example:
        >>> resolver = build_model_resolver(resolve_model_configs(get_settings()))
        >>> chat_model = resolver("gpt-4o-mini")
    """

    catalog: Dict[str, Callable[[], ChatOpenAI]] = {}
    for slot in ("base", "chat"):
        config = model_configs[slot]
        temperature = 0.0 if slot == "base" else 0.3
        catalog[config["id"]] = lambda cfg=config, t=temperature: ChatOpenAI(
            **_chat_kwargs(cfg["id"], cfg["api_key"], cfg["base_url"], t)
        )

    def resolver(model_id: str):
        if model_id not in catalog:
            raise KeyError(f"Model {model_id} is not configured.")
        return catalog[model_id]()

    return resolver
