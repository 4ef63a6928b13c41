"""Routing and planning heuristics loaded from ``routing_patterns.yaml``."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Pattern

import yaml

LOGGER = logging.getLogger(__name__)

DEFAULT_SIMPLE_MAX_LENGTH = 15


@dataclass
class PatternConfig:
    """Compiled, case-insensitive pattern sets.

    - routing: one list per agent type, in file order
    - multi_step / simple / continuation: planner heuristics
    """

    routing: Dict[str, List[Pattern[str]]] = field(default_factory=dict)
    multi_step: List[Pattern[str]] = field(default_factory=list)
    simple: List[Pattern[str]] = field(default_factory=list)
    continuation: List[Pattern[str]] = field(default_factory=list)
    simple_max_length: int = DEFAULT_SIMPLE_MAX_LENGTH


def _compile(patterns: Optional[List[str]], section: str) -> List[Pattern[str]]:
    compiled = []
    for raw in patterns or []:
        try:
            compiled.append(re.compile(raw, re.IGNORECASE))
        except re.error as e:
            LOGGER.warning(f"Skipping invalid {section} pattern {raw!r}: {e}")
    return compiled


def parse_pattern_config(data: dict) -> PatternConfig:
    routing = {
        agent_type: _compile(patterns, f"routing.{agent_type}")
        for agent_type, patterns in (data.get("routing") or {}).items()
    }
    planning = data.get("planning") or {}
    return PatternConfig(
        routing=routing,
        multi_step=_compile(planning.get("multi_step"), "planning.multi_step"),
        simple=_compile(planning.get("simple"), "planning.simple"),
        continuation=_compile(planning.get("continuation"), "planning.continuation"),
        simple_max_length=int(planning.get("simple_max_length", DEFAULT_SIMPLE_MAX_LENGTH)),
    )


def load_pattern_config(config_path: Optional[Path]) -> PatternConfig:
    """Load and compile the pattern file; a missing file yields empty sets."""
    if not config_path or not config_path.exists():
        LOGGER.warning(f"Routing patterns not found at {config_path}, pattern matching disabled")
        return PatternConfig()

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    config = parse_pattern_config(data)
    routing_counts = {k: len(v) for k, v in config.routing.items()}
    LOGGER.debug(
        f"Loaded patterns: routing={routing_counts}, "
        f"multi_step={len(config.multi_step)}, simple={len(config.simple)}"
    )
    return config


def count_matches(patterns: List[Pattern[str]], text: str) -> int:
    return sum(1 for p in patterns if p.search(text))
