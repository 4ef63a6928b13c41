"""Simple CLI for multi-turn conversations with the drive assistant."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional

from driveAgent.config import get_settings, resolve_project_path
from driveAgent.runtime.app import build_application
from driveAgent.runtime.service import AgentService, ChatRequest, ChatResponse
from driveAgent.utils import DriveAgentError, log_error, setup_logging

DEFAULT_CLI_USER = "cli-user"


def _print_response(response: ChatResponse) -> None:
    route = response.route_decision
    print(f"[{response.agent_type} | {route.source} {route.confidence:.2f}]")
    print(f"Agent> {response.message}")
    for approval in response.pending_approvals or []:
        print(f"  ⚠️  Approval {approval.approval_id}: {approval.tool_name} - {approval.reason}")
        print(f"     /approve {approval.approval_id}  or  /reject {approval.approval_id}")


def _print_help() -> None:
    print("\nCommands:")
    print("  /quit, /exit       - Exit")
    print("  /new               - Start a new conversation")
    print("  /list              - List saved conversations")
    print("  /load <id>         - Load a conversation (id prefix is enough)")
    print("  /approvals         - Show pending approvals")
    print("  /approve <id>      - Approve a pending operation")
    print("  /reject <id>       - Reject a pending operation")
    print("  /status            - Show agent status")
    print()


async def _resolve(service: AgentService, user_id: str, approval_id: str, approved: bool) -> None:
    if not approval_id:
        print("Please provide an approval id.")
        return
    outcome = await service.resolve_approval(user_id, approval_id, approved)
    print(f"{'✅' if outcome.success else '❌'} {outcome.message}")
    if outcome.result:
        print(outcome.result)


async def async_main():
    settings = get_settings()
    logger = setup_logging(
        level=getattr(logging, settings.observability.log_level.upper(), logging.INFO),
        log_dir=str(resolve_project_path(settings.observability.log_dir)),
    )
    user_id = os.environ.get("DRIVE_AGENT_USER_ID", DEFAULT_CLI_USER)

    app = build_application(settings)
    service = app.service
    conversation_id: Optional[str] = None

    status = service.get_status()
    print("Drive assistant CLI ready.")
    print(f"User: {user_id} | Model: {status.model} ({status.provider})")
    if not status.enabled:
        print("⚠️  LLM_API_KEY is not set; chat requests will fail.")
    _print_help()

    try:
        while True:
            try:
                loop = asyncio.get_event_loop()
                user_input = await loop.run_in_executor(None, lambda: input("You> ").strip())
            except (KeyboardInterrupt, EOFError):
                print("\nBye!")
                logger.info("Session ended by user")
                break

            if not user_input:
                continue

            command, _, argument = user_input.partition(" ")
            command = command.lower()
            argument = argument.strip()

            if command in {"/quit", "/exit"}:
                print("Session ended.")
                break

            if command == "/new":
                conversation_id = None
                print("Started a new conversation.")
                continue

            if command == "/list":
                items = service.list_conversations(user_id)
                if not items:
                    print("No saved conversations.")
                for item in items:
                    print(
                        f"  {item.id[:12]} | {item.title} | {item.message_count} messages | "
                        f"{item.updated_at:%Y-%m-%d %H:%M}"
                    )
                continue

            if command == "/load":
                matching = [c for c in service.list_conversations(user_id) if c.id.startswith(argument)]
                if not argument or not matching:
                    print(f"No conversation starting with '{argument}'.")
                    continue
                if len(matching) > 1:
                    print(f"{len(matching)} conversations match, please use a longer prefix.")
                    continue
                conversation = service.get_conversation(matching[0].id, user_id)
                conversation_id = conversation.id
                print(f"✅ Loaded {conversation.title} ({len(conversation.messages)} messages)")
                for msg in conversation.messages[-3:]:
                    print(f"  {msg.role}> {(msg.content or '')[:100]}")
                continue

            if command == "/approvals":
                pending = service.get_pending_approvals(user_id)
                if not pending:
                    print("No pending approvals.")
                for request in pending:
                    print(f"  {request.id} | {request.tool_name} | {request.reason}")
                continue

            if command in {"/approve", "/reject"}:
                await _resolve(service, user_id, argument, command == "/approve")
                continue

            if command == "/status":
                status = service.get_status()
                print(f"enabled={status.enabled} model={status.model} provider={status.provider}")
                continue

            try:
                response = await service.chat(
                    user_id, ChatRequest(message=user_input, conversation_id=conversation_id)
                )
            except DriveAgentError as e:
                log_error(logger, e, "chat turn")
                print(f"❌ {e.user_message}")
                continue

            conversation_id = response.conversation_id
            _print_response(response)
    finally:
        await app.close()


def main():
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
