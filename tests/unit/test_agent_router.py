"""Tests for AgentRouter priority order and fallbacks."""

import pytest

from driveAgent.agents.router import pattern_confidence

AMBIGUOUS = "hmm, what about the other one?"


class TestPatternConfidence:
    def test_values(self):
        assert pattern_confidence(0, 0) == 0.0
        assert pattern_confidence(1, 0) == pytest.approx(1 / 3)
        assert pattern_confidence(5, 0) == 1.0
        assert pattern_confidence(3, 1) == pytest.approx(0.5)
        assert pattern_confidence(2, 2) == 0.0


class TestRoutingPriority:
    @pytest.mark.asyncio
    async def test_explicit_hint_always_wins(self, router, base_model):
        decision = await router.route("list my files", explicit_type="search", sticky_type="drive")

        assert decision.agent_type == "search"
        assert decision.source == "explicit"
        assert decision.confidence == 1.0
        assert base_model.calls == []

    @pytest.mark.asyncio
    async def test_list_my_files_routes_to_drive_by_pattern(self, router):
        decision = await router.route("list my files")

        assert decision.agent_type == "drive"
        assert decision.source == "pattern"
        assert decision.confidence >= 0.3
        assert decision.reason.startswith("Pattern matching (score: 1")

    @pytest.mark.asyncio
    async def test_strong_pattern_overrides_sticky_type(self, router):
        decision = await router.route("list my files", sticky_type="document")

        assert decision.agent_type == "drive"
        assert decision.source == "pattern"

    @pytest.mark.asyncio
    async def test_sticky_type_used_without_pattern_signal(self, router, base_model):
        decision = await router.route(AMBIGUOUS, sticky_type="document")

        assert decision.agent_type == "document"
        assert decision.source == "conversation"
        assert decision.confidence == 0.9
        assert base_model.calls == []

    @pytest.mark.asyncio
    async def test_unknown_explicit_hint_is_ignored(self, router):
        decision = await router.route("list my files", explicit_type="spreadsheet")

        assert decision.source == "pattern"


class TestLlmClassifier:
    @pytest.mark.asyncio
    async def test_llm_decision(self, router, base_model):
        base_model.queue('Sure: {"route_to": "search", "confidence": 0.8, "reason": "looking for a file"}')

        decision = await router.route(AMBIGUOUS, context_text="user: where is my tax form")

        assert decision.agent_type == "search"
        assert decision.source == "llm"
        assert decision.confidence == 0.8
        assert decision.reason == "looking for a file"
        sent = base_model.calls[0]
        assert any("Recent conversation context:\nuser: where is my tax form" in m.content for m in sent)
        assert sent[-1].content == f'Classify this user request:\n"{AMBIGUOUS}"'

    @pytest.mark.asyncio
    async def test_llm_confidence_is_clamped(self, router, base_model):
        base_model.queue('{"route_to": "drive", "confidence": 7}')

        decision = await router.route(AMBIGUOUS)

        assert decision.confidence == 1.0
        assert decision.reason == "LLM classification"

    @pytest.mark.asyncio
    async def test_out_of_set_answer_falls_back_to_default(self, router, base_model):
        base_model.queue('{"route_to": "calendar", "confidence": 0.9}')

        decision = await router.route(AMBIGUOUS)

        assert decision.agent_type == "drive"
        assert decision.source == "default"
        assert decision.confidence == 0.2

    @pytest.mark.asyncio
    async def test_backend_failure_never_raises(self, router, base_model):
        base_model.queue(RuntimeError("connection refused"))

        decision = await router.route(AMBIGUOUS)

        assert decision.source == "default"
        assert decision.reason == "Default routing (no pattern match, LLM Router unavailable)"

    @pytest.mark.asyncio
    async def test_missing_backend_degrades_like_a_failure(self, router, model_resolver):
        model_resolver.models.clear()

        decision = await router.route(AMBIGUOUS)

        assert decision.source == "default"

    @pytest.mark.asyncio
    async def test_weak_pattern_used_when_llm_unavailable(self, router, base_model):
        base_model.queue("not json at all")

        decision = await router.route("translate it and share it with Bob")

        assert decision.agent_type == "document"
        assert decision.source == "pattern"
        assert decision.confidence == 0.3
        assert decision.reason == "Low-confidence pattern fallback (LLM Router unavailable)"
