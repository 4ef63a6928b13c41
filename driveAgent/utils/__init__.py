"""Utilities for driveAgent."""

from .error_handler import (
    BackendUnavailableError,
    ConversationNotFoundError,
    DriveAgentError,
    InvalidRequestError,
    ModelInvocationError,
    ToolExecutionError,
    handle_model_error,
)
from .logging_utils import (
    log_agent_response,
    log_error,
    log_plan_created,
    log_routing_decision,
    log_step_execution,
    log_tool_call,
    log_tool_result,
    log_user_message,
    log_visible_tools,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "log_tool_call",
    "log_tool_result",
    "log_error",
    "log_user_message",
    "log_agent_response",
    "log_visible_tools",
    "log_routing_decision",
    "log_plan_created",
    "log_step_execution",
    "handle_model_error",
    "DriveAgentError",
    "BackendUnavailableError",
    "ModelInvocationError",
    "ToolExecutionError",
    "ConversationNotFoundError",
    "InvalidRequestError",
]
