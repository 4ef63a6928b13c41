"""Helpers that resolve and invoke chat models for agents and classifiers."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from langchain_core.messages import BaseMessage

from driveAgent.models import ModelRegistry
from driveAgent.runtime.model_resolver import ModelResolver
from driveAgent.utils.error_handler import (
    BackendUnavailableError,
    DriveAgentError,
    ModelInvocationError,
    handle_model_error,
)

LOGGER = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def get_model(*, model_registry: ModelRegistry, model_resolver: ModelResolver, phase: str, require_tools: bool):
    """Resolve the model for a phase.

    Raises:
        BackendUnavailableError: If the model is not configured
    """
    spec = model_registry.prefer(phase=phase, require_tools=require_tools)
    try:
        model = model_resolver(spec.model_id)
    except KeyError as e:
        raise BackendUnavailableError(f"Model {spec.model_id} is not configured.") from e
    LOGGER.debug(f"Model selected for {phase}: {spec.model_id}")
    return model


async def invoke_model(runnable, messages: List[BaseMessage], phase: str):
    """Invoke a (possibly tool-bound) model, normalizing backend failures."""
    try:
        return await runnable.ainvoke(messages)
    except DriveAgentError:
        raise
    except Exception as e:
        LOGGER.error(f"Model call failed during {phase}: {type(e).__name__}: {e}")
        raise ModelInvocationError(
            f"AI service returned error: {e}", user_message=handle_model_error(e)
        ) from e


async def invoke_classifier(
    *,
    model_registry: ModelRegistry,
    model_resolver: ModelResolver,
    messages: List[BaseMessage],
    phase: str,
) -> str:
    """Run a tool-free model call and return its text."""
    model = get_model(model_registry=model_registry, model_resolver=model_resolver, phase=phase, require_tools=False)
    response = await invoke_model(model, messages, phase)
    return content_text(response.content).strip()


def content_text(content: Any) -> str:
    if isinstance(content, list):
        pieces = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                pieces.append(str(item["text"]))
            elif isinstance(item, str):
                pieces.append(item)
        return "\n".join(pieces)
    return str(content or "")


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Parse the outermost ``{...}`` in a model reply; None if absent or invalid."""
    match = _JSON_OBJECT.search(text or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None
