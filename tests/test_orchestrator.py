"""
Tests for the Dialogue Orchestrator.
"""

from unittest.mock import AsyncMock
from unittest.mock import Mock

import pytest
from conftest import FINISH_JSON
from conftest import FakeGenerator
from conftest import ScriptedJudge

from talk_with_doc.dialogue.orchestrator import DialogueOrchestrator
from talk_with_doc.dialogue.personas import build_responders
from talk_with_doc.dialogue.router import TurnRouter
from talk_with_doc.dialogue.state import DialogueMessage
from talk_with_doc.dialogue.state import InterruptState
from talk_with_doc.dialogue.state import InterruptToken
from talk_with_doc.dialogue.state import Persona
from talk_with_doc.dialogue.state import TurnStatus

QUESTION = "What does this document say about pricing?"


def make_orchestrator(generator, judge=None):
    return DialogueOrchestrator(TurnRouter(judge=judge), build_responders(generator))


@pytest.mark.unit
class TestRunTurn:
    @pytest.mark.asyncio
    async def test_critic_then_creative(self):
        generator = FakeGenerator()
        delivered = []

        async def on_output(message):
            delivered.append(message)

        result = await make_orchestrator(generator).run_turn(
            QUESTION, "Pricing: $10 per seat.", on_output=on_output
        )

        assert result.status is TurnStatus.COMPLETED
        assert [message.persona for message in result.outputs] == [
            Persona.CRITIC,
            Persona.CREATIVE,
        ]
        assert delivered == result.outputs
        assert [message.speaker for message in result.history] == ["user", "critic", "creative"]
        assert [call["voice"] for call in generator.speech_calls] == ["onyx", "nova"]

    @pytest.mark.asyncio
    async def test_judge_extends_to_ceiling(self):
        judge = ScriptedJudge(
            '{"next": "critic", "reasoning": ""}', '{"next": "creative", "reasoning": ""}'
        )

        result = await make_orchestrator(FakeGenerator(), judge).run_turn(QUESTION)

        assert [message.speaker for message in result.outputs] == [
            "critic",
            "creative",
            "critic",
            "creative",
        ]

    @pytest.mark.asyncio
    async def test_prior_history_is_carried(self):
        generator = FakeGenerator()
        prior = [
            DialogueMessage.from_user("Earlier question"),
            DialogueMessage(text="Earlier answer", persona=Persona.CRITIC),
        ]

        result = await make_orchestrator(generator).run_turn(QUESTION, prior_history=prior)

        assert result.history[:3] == prior + [DialogueMessage.from_user(QUESTION)]
        first_messages = generator.speech_calls[0]["messages"]
        assert first_messages[1] == {"role": "assistant", "content": "Critic: Earlier answer"}

    @pytest.mark.asyncio
    async def test_document_context_is_truncated(self):
        generator = FakeGenerator()

        result = await make_orchestrator(generator).run_turn(QUESTION, "d" * 9000)

        assert len(result.document_context) == 4000
        assert generator.speech_calls[0]["system"].endswith("d" * 4000)

    @pytest.mark.asyncio
    async def test_unrecognized_decision_finishes(self):
        router = Mock()
        router.decide = AsyncMock(return_value=Mock(next="narrator", reasoning=""))
        generator = FakeGenerator()
        orchestrator = DialogueOrchestrator(router, build_responders(generator))

        result = await orchestrator.run_turn(QUESTION)

        assert result.status is TurnStatus.COMPLETED
        assert result.outputs == []
        assert generator.speech_calls == []


@pytest.mark.unit
class TestInterruption:
    @pytest.mark.asyncio
    async def test_interrupted_before_start_produces_nothing(self):
        generator = FakeGenerator()
        token = InterruptToken()
        token.interrupt()

        result = await make_orchestrator(generator).run_turn(QUESTION, token=token)

        assert result.status is TurnStatus.INTERRUPTED
        assert result.outputs == []
        assert generator.speech_calls == []
        assert token.state is InterruptState.CONSUMED

    @pytest.mark.asyncio
    async def test_reply_completing_after_interrupt_is_discarded(self):
        token = InterruptToken()
        generator = FakeGenerator(on_speech=lambda voice: token.interrupt())
        delivered = []

        async def on_output(message):
            delivered.append(message)

        result = await make_orchestrator(generator).run_turn(
            QUESTION, token=token, on_output=on_output
        )

        assert result.interrupted
        assert result.outputs == []
        assert delivered == []
        assert [call["voice"] for call in generator.speech_calls] == ["onyx"]

    @pytest.mark.asyncio
    async def test_interrupt_during_delivery_stops_next_persona(self):
        token = InterruptToken()
        generator = FakeGenerator()
        delivered = []

        async def on_output(message):
            delivered.append(message)
            token.interrupt()

        result = await make_orchestrator(generator).run_turn(
            QUESTION, token=token, on_output=on_output
        )

        assert result.interrupted
        assert [message.speaker for message in result.outputs] == ["critic"]
        assert [message.speaker for message in delivered] == ["critic"]
        assert len(generator.speech_calls) == 1

    @pytest.mark.asyncio
    async def test_interrupt_during_routing_skips_persona(self):
        token = InterruptToken()
        router = Mock()

        async def decide(state):
            token.interrupt()
            return Mock(next="critic", reasoning="")

        router.decide = decide
        generator = FakeGenerator()
        orchestrator = DialogueOrchestrator(router, build_responders(generator))

        result = await orchestrator.run_turn(QUESTION, token=token)

        assert result.interrupted
        assert generator.speech_calls == []

    @pytest.mark.asyncio
    async def test_interrupt_while_judging_finish_ends_interrupted(self):
        token = InterruptToken()

        class InterruptingJudge:
            async def judge(self, state, expected):
                token.interrupt()
                return FINISH_JSON

        generator = FakeGenerator()
        orchestrator = make_orchestrator(generator, judge=InterruptingJudge())

        result = await orchestrator.run_turn(QUESTION, token=token)

        assert result.interrupted
        assert result.status is TurnStatus.INTERRUPTED
        assert [message.speaker for message in result.outputs] == ["critic", "creative"]
        assert token.state is InterruptState.CONSUMED


@pytest.mark.unit
class TestResumeWithInterruption:
    @pytest.mark.asyncio
    async def test_resume_seeds_only_recent_user_messages(self):
        generator = FakeGenerator()
        prior = [
            DialogueMessage.from_user("u1"),
            DialogueMessage(text="c1", persona=Persona.CRITIC),
            DialogueMessage.from_user("u2"),
            DialogueMessage(text="cr2", persona=Persona.CREATIVE),
            DialogueMessage.from_user("u3"),
            DialogueMessage(text="c3", persona=Persona.CRITIC),
        ]

        result = await make_orchestrator(generator).resume_with_interruption("u4", prior_history=prior)

        assert [message.text for message in result.history[:3]] == ["u2", "u3", "u4"]
        first_messages = generator.speech_calls[0]["messages"]
        assert first_messages == [
            {"role": "user", "content": "u2"},
            {"role": "user", "content": "u3"},
            {"role": "user", "content": "u4"},
        ]

    @pytest.mark.asyncio
    async def test_resume_uses_fresh_correlation_id(self):
        orchestrator = make_orchestrator(FakeGenerator())

        first = await orchestrator.run_turn(QUESTION, correlation_id="turn-1")
        resumed = await orchestrator.resume_with_interruption("again", prior_history=first.history)

        assert first.correlation_id == "turn-1"
        assert resumed.correlation_id != "turn-1"
