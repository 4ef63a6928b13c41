"""JSON-schema validation of model-supplied tool arguments."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import jsonschema

LOGGER = logging.getLogger(__name__)


def validate_tool_arguments(schema: Dict[str, Any], args: Dict[str, Any]) -> Optional[str]:
    """Validate ``args`` against a tool input schema.

    A schema that is itself invalid is logged and skipped.

    Returns:
        None when valid, otherwise a short description of the first problem
    """
    if not schema:
        return None
    try:
        jsonschema.validate(args, schema)
    except jsonschema.ValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path)
        return f"{location}: {e.message}" if location else e.message
    except jsonschema.SchemaError as e:
        LOGGER.warning(f"Skipping argument validation, invalid tool schema: {e.message}")
    return None
