"""
Tests for the Turn Router.
"""

import itertools
from unittest.mock import AsyncMock
from unittest.mock import Mock

import pytest
from conftest import FINISH_JSON
from conftest import ScriptedJudge

from talk_with_doc.dialogue.router import ModelRoutingJudge
from talk_with_doc.dialogue.router import TurnRouter
from talk_with_doc.dialogue.router import parse_decision
from talk_with_doc.dialogue.state import FINISH
from talk_with_doc.dialogue.state import DialogueMessage
from talk_with_doc.dialogue.state import DialogueState
from talk_with_doc.dialogue.state import InterruptToken
from talk_with_doc.dialogue.state import Persona

CRITIC = Persona.CRITIC
CREATIVE = Persona.CREATIVE


def make_state(*speakers):
    """Build a state from speakers; None is a user message."""
    state = DialogueState(document_context="", token=InterruptToken())
    for index, persona in enumerate(speakers):
        state.append(DialogueMessage(text=f"message {index}", persona=persona))
    return state


class RaisingJudge:
    async def judge(self, state, expected):
        raise RuntimeError("model unavailable")


@pytest.mark.unit
class TestParseDecision:
    def test_valid_json(self):
        decision = parse_decision('{"next": "critic", "reasoning": "more to say"}')

        assert decision.next == "critic"
        assert decision.reasoning == "more to say"

    def test_fenced_json(self):
        decision = parse_decision('```json\n{"next": "FINISH", "reasoning": "done"}\n```')

        assert decision.is_finish

    @pytest.mark.parametrize(
        "raw",
        [
            "not json at all",
            '{"next": "narrator", "reasoning": "x"}',
            '{"reasoning": "missing next"}',
            "[]",
            "",
        ],
    )
    def test_invalid_output_defaults_to_finish(self, raw):
        assert parse_decision(raw).next == FINISH


@pytest.mark.unit
class TestTurnRouter:
    @pytest.mark.asyncio
    async def test_fresh_user_message_goes_to_critic(self):
        router = TurnRouter()

        decision = await router.decide(make_state(None))

        assert decision.next == "critic"

    @pytest.mark.asyncio
    async def test_follow_up_resets_to_critic(self):
        router = TurnRouter(judge=ScriptedJudge('{"next": "creative", "reasoning": ""}'))

        decision = await router.decide(make_state(None, CRITIC, CREATIVE, None))

        assert decision.next == "critic"

    @pytest.mark.asyncio
    async def test_floor_hands_over_to_creative_without_judge(self):
        judge = ScriptedJudge()
        router = TurnRouter(judge=judge)

        decision = await router.decide(make_state(None, CRITIC))

        assert decision.next == "creative"
        assert judge.calls == []

    @pytest.mark.asyncio
    async def test_no_judge_finishes_after_floor(self):
        decision = await TurnRouter().decide(make_state(None, CRITIC, CREATIVE))

        assert decision.is_finish

    @pytest.mark.asyncio
    async def test_judge_can_continue_alternation(self):
        judge = ScriptedJudge('{"next": "critic", "reasoning": "open question"}')
        router = TurnRouter(judge=judge)

        decision = await router.decide(make_state(None, CRITIC, CREATIVE))

        assert decision.next == "critic"
        assert judge.calls == [CRITIC]

    @pytest.mark.asyncio
    async def test_judge_can_finish(self):
        router = TurnRouter(judge=ScriptedJudge(FINISH_JSON))

        decision = await router.decide(make_state(None, CRITIC, CREATIVE))

        assert decision.is_finish

    @pytest.mark.asyncio
    async def test_judge_repeating_last_speaker_finishes(self):
        router = TurnRouter(judge=ScriptedJudge('{"next": "creative", "reasoning": ""}'))

        decision = await router.decide(make_state(None, CRITIC, CREATIVE))

        assert decision.is_finish

    @pytest.mark.asyncio
    async def test_invalid_judge_output_finishes(self):
        router = TurnRouter(judge=ScriptedJudge("I think the critic should go"))

        decision = await router.decide(make_state(None, CRITIC, CREATIVE))

        assert decision.is_finish

    @pytest.mark.asyncio
    async def test_judge_failure_finishes(self):
        router = TurnRouter(judge=RaisingJudge())

        decision = await router.decide(make_state(None, CRITIC, CREATIVE))

        assert decision.is_finish

    @pytest.mark.asyncio
    async def test_ceiling_forces_finish(self):
        judge = ScriptedJudge('{"next": "critic", "reasoning": ""}')
        router = TurnRouter(judge=judge)

        decision = await router.decide(make_state(None, CRITIC, CREATIVE, CRITIC, CREATIVE))

        assert decision.is_finish
        assert judge.calls == []

    @pytest.mark.asyncio
    async def test_no_user_message_finishes(self):
        assert (await TurnRouter().decide(make_state())).is_finish

    @pytest.mark.asyncio
    async def test_never_repeats_a_persona(self):
        outputs = [
            '{"next": "critic", "reasoning": ""}',
            '{"next": "creative", "reasoning": ""}',
            FINISH_JSON,
            "garbage",
        ]
        for script in itertools.product(outputs, repeat=2):
            router = TurnRouter(judge=ScriptedJudge(*script))
            state = make_state(None)
            while True:
                decision = await router.decide(state)
                if decision.is_finish:
                    break
                persona = Persona(decision.next)
                topic = state.persona_messages_since_user()
                if topic:
                    assert topic[-1].persona is not persona
                else:
                    assert persona is CRITIC
                state.append(DialogueMessage(text="reply", persona=persona))

            topic = state.persona_messages_since_user()
            assert 2 <= len(topic) <= 4
            assert {message.persona for message in topic} == {CRITIC, CREATIVE}


@pytest.mark.unit
class TestModelRoutingJudge:
    @pytest.mark.asyncio
    async def test_requests_json_mode_completion(self):
        provider_pool = Mock()
        provider_pool.chat_completion = AsyncMock(
            return_value={"choices": [{"message": {"content": FINISH_JSON}}]}
        )
        judge = ModelRoutingJudge(provider_pool, model="router-model")

        raw = await judge.judge(make_state(None, CRITIC, CREATIVE), CRITIC)

        assert raw == FINISH_JSON
        payload = provider_pool.chat_completion.await_args.args[0]
        assert payload["model"] == "router-model"
        assert payload["response_format"] == {"type": "json_object"}
        assert "JSON" in payload["messages"][1]["content"]
        assert parse_decision(raw).is_finish
