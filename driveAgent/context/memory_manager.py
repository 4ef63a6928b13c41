"""Working-memory assembly and context-size control.

Responsibilities:
1. Build a bounded view of a conversation: rolling summaries of old messages plus a
   sliding window of recent ones, without touching persisted history
2. Assemble the message list sent to the model, including plan framing
3. Keep an in-flight message list under the context cap (shrink, then drop)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from driveAgent.persistence.schema import Message, Summary
from driveAgent.planning.schema import TaskPlan
from driveAgent.planning.tracker import STATUS_ICONS

LOGGER = logging.getLogger(__name__)

SummaryInvoker = Callable[[str], Awaitable[str]]

SUMMARY_PROMPT = """Summarize the following part of a conversation between a user and a cloud drive assistant.
Keep: file and folder names and ids the user referred to, operations performed and their outcomes,
decisions and open requests. Drop: pleasantries, raw listings. Write at most 10 short bullet points
in the user's language."""

SHRINK_MIN_CHARS = 200
SHRINK_KEEP_CHARS = 150
EXCERPT_CHARS = 200


@dataclass
class MemoryState:
    """Working-memory view of one conversation."""

    summaries: List[Summary] = field(default_factory=list)
    window: List[Message] = field(default_factory=list)
    active_plan: Optional[TaskPlan] = None
    window_start: int = 0


class MemoryManager:
    """Builds size-bounded model input from full history, summaries and the active plan."""

    def __init__(
        self,
        max_history_messages: int = 20,
        summary_batch_size: int = 10,
        max_context_chars: int = 480_000,
        keep_recent_messages: int = 6,
        summarizer: Optional[SummaryInvoker] = None,
    ):
        self.max_history_messages = max_history_messages
        self.summary_batch_size = summary_batch_size
        self.max_context_chars = max_context_chars
        self.keep_recent_messages = keep_recent_messages
        self.summarizer = summarizer

    @classmethod
    def from_settings(cls, memory_settings, summarizer: Optional[SummaryInvoker] = None) -> "MemoryManager":
        return cls(
            max_history_messages=memory_settings.max_history_messages,
            summary_batch_size=memory_settings.summary_batch_size,
            max_context_chars=memory_settings.max_context_chars,
            keep_recent_messages=memory_settings.keep_recent_messages,
            summarizer=summarizer,
        )

    # ------------------------------------------------------------------
    # Memory state
    # ------------------------------------------------------------------

    async def build_memory_state(
        self,
        messages: List[Message],
        existing_summaries: List[Summary],
        active_plan: Optional[TaskPlan] = None,
    ) -> MemoryState:
        """Assemble the working-memory view. ``messages`` is never mutated.

        Messages older than the sliding window are folded into a new summary once at
        least ``summary_batch_size`` of them are not yet covered; until then the window
        reaches back to the end of the last summary.
        """
        total = len(messages)
        summaries = [s for s in existing_summaries if s.end_index <= total]
        if len(summaries) != len(existing_summaries):
            LOGGER.warning("Dropped summaries covering messages beyond the current history")
        covered = max((s.end_index for s in summaries), default=0)

        window_start = max(total - self.max_history_messages, covered)
        if window_start - covered >= self.summary_batch_size:
            to_summarize = messages[covered:window_start]
            content = await self._summarize(to_summarize)
            summaries = summaries + [Summary(content=content, start_index=covered, end_index=window_start)]
            LOGGER.info(f"Summarized messages {covered}..{window_start} ({len(to_summarize)} messages)")
        else:
            window_start = covered

        return MemoryState(
            summaries=summaries,
            window=list(messages[window_start:]),
            active_plan=active_plan,
            window_start=window_start,
        )

    async def _summarize(self, messages: List[Message]) -> str:
        transcript = self._format_messages_for_summary(messages)
        if self.summarizer is not None:
            try:
                summary = (await self.summarizer(f"{SUMMARY_PROMPT}\n\n{transcript}")).strip()
                if summary:
                    return summary
                LOGGER.warning("Summarizer returned empty text, using extractive summary")
            except Exception as e:
                LOGGER.warning(f"Summarizer failed, using extractive summary: {e}")
        return self._extractive_summary(messages)

    def _format_messages_for_summary(self, messages: List[Message]) -> str:
        formatted = []
        for msg in messages:
            content = (msg.content or "")[:2000]
            if msg.tool_calls:
                tools = ", ".join(tc.tool_name for tc in msg.tool_calls)
                formatted.append(f"[{msg.role}] (used tools: {tools}) {content}")
            else:
                formatted.append(f"[{msg.role}] {content}")
        return "\n\n".join(formatted)

    def _extractive_summary(self, messages: List[Message]) -> str:
        lines = [f"Earlier conversation ({len(messages)} messages):"]
        for msg in messages:
            text = (msg.content or "").strip().replace("\n", " ")
            if msg.tool_calls:
                text = f"{text} [tools: {', '.join(tc.tool_name for tc in msg.tool_calls)}]".strip()
            if text:
                lines.append(f"- {msg.role}: {text[:EXCERPT_CHARS]}")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Model input
    # ------------------------------------------------------------------

    def assemble_llm_messages(self, system_prompt: str, state: MemoryState) -> List[BaseMessage]:
        """[system, summaries-as-context, sliding window, plan framing]."""
        result: List[BaseMessage] = [SystemMessage(content=system_prompt)]

        if state.summaries:
            digest = "\n\n".join(s.content for s in state.summaries)
            result.append(SystemMessage(content=f"Summary of earlier conversation:\n{digest}"))

        result.extend(to_langchain_message(m) for m in state.window)

        if state.active_plan is not None and not state.active_plan.is_complete:
            result.append(SystemMessage(content=render_plan_framing(state.active_plan)))

        return result

    # ------------------------------------------------------------------
    # Compression
    # ------------------------------------------------------------------

    def estimate_chars(self, messages: List[BaseMessage]) -> int:
        return sum(_message_size(m) for m in messages)

    def compress_if_needed(self, messages: List[BaseMessage]) -> bool:
        """Bring ``messages`` under the context cap in place.

        Phase 1 shrinks tool results outside the most recent ``keep_recent_messages``.
        Phase 2 drops the oldest non-system messages while more than
        ``keep_recent_messages + 1`` remain.

        Returns:
            True if anything changed
        """
        total = self.estimate_chars(messages)
        if total <= self.max_context_chars:
            return False

        original_total = total
        changed = False

        # Phase 1: shrink old tool results
        protected_from = max(len(messages) - self.keep_recent_messages, 0)
        for i in range(protected_from):
            if total <= self.max_context_chars:
                break
            msg = messages[i]
            if not isinstance(msg, ToolMessage):
                continue
            content = str(msg.content)
            if len(content) <= SHRINK_MIN_CHARS:
                continue
            shrunk = content[:SHRINK_KEEP_CHARS] + f"\n[...compressed, original {len(content)} chars]"
            messages[i] = ToolMessage(content=shrunk, tool_call_id=msg.tool_call_id, name=msg.name)
            total -= len(content) - len(shrunk)
            changed = True

        # Phase 2: drop oldest non-system messages
        floor = self.keep_recent_messages + 1
        while total > self.max_context_chars and len(messages) > floor:
            index = _first_non_system_index(messages)
            if index is None:
                break
            total -= _message_size(messages.pop(index))
            changed = True

            # Drop tool results orphaned by the removal
            while len(messages) > floor:
                index = _first_non_system_index(messages)
                if index is None or not isinstance(messages[index], ToolMessage):
                    break
                total -= _message_size(messages.pop(index))

        if changed:
            LOGGER.info(
                f"Compressed context: {original_total} → {total} chars "
                f"(cap {self.max_context_chars}, {len(messages)} messages left)"
            )
        if total > self.max_context_chars:
            LOGGER.warning(f"Context still over cap after compression: {total} chars")
        return changed


def _message_size(message: BaseMessage) -> int:
    size = len(str(message.content))
    if isinstance(message, AIMessage) and message.tool_calls:
        size += sum(len(json.dumps(tc.get("args", {}), ensure_ascii=False, default=str)) for tc in message.tool_calls)
    return size


def _first_non_system_index(messages: List[BaseMessage]) -> Optional[int]:
    for i, msg in enumerate(messages):
        if not isinstance(msg, SystemMessage):
            return i
    return None


def to_langchain_message(message: Message) -> BaseMessage:
    """Convert a persisted message to its model-facing form."""
    content = message.content or ""
    if message.role == "user":
        return HumanMessage(content=content)
    if message.role == "tool":
        return AIMessage(content=f"[Tool output]\n{content}")
    if not content and message.tool_calls:
        content = "Used tools: " + ", ".join(tc.tool_name for tc in message.tool_calls)
    return AIMessage(content=content)


def render_plan_framing(plan: TaskPlan) -> str:
    lines = ["[Active Task Plan]", f"Goal: {plan.goal}", "Steps:"]
    for step in plan.steps:
        agent = f" [{step.agent_type}]" if step.agent_type else ""
        lines.append(f"{STATUS_ICONS.get(step.status, '⬜')} {step.id}. {step.title}{agent} ({step.status})")
    current = plan.get_step(plan.current_step)
    if current is not None:
        lines.append(f"Current step: {current.id} - {current.title}")
        if current.description:
            lines.append(f"Details: {current.description}")
    lines.append("Work on the current step only; earlier results appear in the conversation above.")
    return "\n".join(lines)
