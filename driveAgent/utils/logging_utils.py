"""Logging utilities for driveAgent."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable

ROOT_LOGGER_NAME = "driveAgent"


def setup_logging(level: int = logging.INFO, log_dir: str = "logs") -> logging.Logger:
    """Setup logging configuration for driveAgent.

    Args:
        level: Level of the detailed file log (default: INFO)
        log_dir: Directory receiving the timestamped log file

    Returns:
        Configured logger instance
    """
    logs_path = Path(log_dir)
    logs_path.mkdir(parents=True, exist_ok=True)
    log_file = logs_path / f"driveagent_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # Capture all child logs, handlers filter
    logger.propagate = False

    logger.handlers = []

    # File handler (detailed logs)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    # Console handler (user-friendly)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    logger.info("=" * 80)
    logger.info("driveAgent session started")
    logger.info(f"Log file: {log_file}")
    logger.info("=" * 80)

    return logger


def log_tool_call(logger: logging.Logger, tool_name: str, args: Dict[str, Any]) -> None:
    """Log tool invocation."""
    logger.info(f"Tool call: {tool_name}")
    logger.debug(f"  Arguments: {json.dumps(args, ensure_ascii=False, default=str)}")


def log_tool_result(logger: logging.Logger, tool_name: str, result: Any, success: bool = True) -> None:
    """Log tool execution result with a truncated preview."""
    status = "✓ Success" if success else "✗ Failed"
    logger.info(f"Tool result: {tool_name} - {status}")

    result_str = str(result)
    if len(result_str) > 500:
        result_str = result_str[:500] + "... (truncated)"
    logger.debug(f"  Result: {result_str}")


def log_error(logger: logging.Logger, error: Exception, context: str = "") -> None:
    """Log error with context.

    Args:
        logger: Logger instance
        error: Exception instance
        context: Additional context about where the error occurred
    """
    logger.error(f"Error occurred: {type(error).__name__}: {str(error)}")
    if context:
        logger.error(f"  Context: {context}")
    logger.debug("Full traceback:", exc_info=error)


def log_user_message(logger: logging.Logger, content: str) -> None:
    logger.info(f"User input: {content[:100]}{'...' if len(content) > 100 else ''}")


def log_agent_response(logger: logging.Logger, content: str) -> None:
    logger.info(f"Agent response: {content[:100]}{'...' if len(content) > 100 else ''}")


def log_visible_tools(logger: logging.Logger, agent_type: str, tools: Iterable[Any]) -> None:
    """Log the operations exposed to an agent for this run.

    Args:
        logger: Logger instance
        agent_type: Agent the tool set belongs to
        tools: Tool names or objects with a ``name`` attribute
    """
    tool_names = [t.name if hasattr(t, "name") else str(t) for t in tools]
    logger.debug(f"Visible tools for {agent_type}: [{', '.join(tool_names)}]")
    logger.debug(f"  Total: {len(tool_names)} tools")


def log_routing_decision(logger: logging.Logger, agent_type: str, source: str, confidence: float, reason: str = "") -> None:
    """Log routing decision.

    Args:
        logger: Logger instance
        agent_type: Chosen agent type
        source: Which routing rule produced the decision
        confidence: Decision confidence in [0, 1]
        reason: Reason for the routing decision
    """
    logger.info(f"Routing decision: → {agent_type} (source: {source}, confidence: {confidence:.2f})")
    if reason:
        logger.debug(f"  → Reason: {reason}")


def log_plan_created(logger: logging.Logger, plan: Dict[str, Any]) -> None:
    """Log plan creation details.

    Args:
        logger: Logger instance
        plan: Plan dictionary (``TaskPlan.model_dump()``)
    """
    logger.info(f"\n{'='*80}")
    logger.info("Plan created:")
    logger.info(f"  Goal: {plan.get('goal', 'N/A')}")
    logger.info(f"  Total steps: {len(plan.get('steps', []))}")
    for step in plan.get("steps", []):
        logger.info(f"  Step {step.get('id')}: {step.get('title')}")
        logger.info(f"    - Agent: {step.get('agent_type') or 'default'}")
        logger.debug(f"    - Description: {step.get('description')}")
    logger.info(f"{'='*80}\n")


def log_step_execution(logger: logging.Logger, step: Dict[str, Any], total_steps: int, agent_type: str) -> None:
    """Log step execution details.

    Args:
        logger: Logger instance
        step: Step dictionary (``TaskStep.model_dump()``)
        total_steps: Number of steps in the plan
        agent_type: Agent executing the step
    """
    logger.info(f"\n{'='*80}")
    logger.info(f"Executing Step {step.get('id')} of {total_steps}:")
    logger.info(f"  Title: {step.get('title')}")
    logger.info(f"  Agent: {agent_type}")
    logger.debug(f"  Description: {step.get('description')}")
    logger.info(f"{'='*80}\n")
