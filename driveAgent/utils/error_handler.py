"""Unified error types for the agent core.

Only the errors defined here cross the service boundary. Tool failures, gateway
blocks, pending approvals and classifier failures are absorbed into data instead.
"""

from __future__ import annotations

import logging
from typing import Optional

LOGGER = logging.getLogger(__name__)

BACKEND_NOT_CONFIGURED = "AI Agent is not configured. Please set LLM_API_KEY environment variable."
TOOLS_UNAVAILABLE = "The drive tool service is unavailable, please try again later."


class DriveAgentError(Exception):
    """Base exception for driveAgent errors."""

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or message


class BackendUnavailableError(DriveAgentError):
    """The language-model backend is not configured or cannot be reached."""

    def __init__(self, message: str = BACKEND_NOT_CONFIGURED, user_message: Optional[str] = None):
        super().__init__(message, user_message)


class ModelInvocationError(DriveAgentError):
    """Error during model invocation."""
    pass


class ToolExecutionError(DriveAgentError):
    """Error raised by a tool client while executing an operation."""
    pass


class ConversationNotFoundError(DriveAgentError):
    """Conversation is missing, inactive or owned by someone else."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation not found: {conversation_id}", "Conversation not found")
        self.conversation_id = conversation_id


class InvalidRequestError(DriveAgentError):
    """Request rejected before any work was done."""
    pass


def handle_model_error(error: Exception) -> str:
    """Convert model invocation errors to user-friendly messages.

    Args:
        error: Exception raised during model invocation

    Returns:
        User-friendly error message
    """
    error_str = str(error).lower()

    if "rate_limit" in error_str or "429" in error_str:
        return "Too many requests to the AI service, please try again shortly"

    if "timeout" in error_str or "timed out" in error_str:
        return "The AI service timed out, please retry"

    if "context_length" in error_str or "maximum context" in error_str:
        return "The conversation is too long, please start a new one"

    if "invalid_api_key" in error_str or "authentication" in error_str or "401" in error_str:
        return "The AI service rejected the configured API key"

    if "quota" in error_str or "insufficient" in error_str:
        return "The AI service quota is exhausted"

    return f"The AI service is temporarily unavailable: {error}"
