"""
Turn Router deciding which persona speaks next.

The policy is fixed:

* a fresh user message always hands the floor to the critic;
* personas strictly alternate;
* both personas speak at least once per topic before FINISH is allowed;
* after ``max_persona_turns`` persona replies on a topic the router finishes.

Between the floor and the ceiling, whether the exchange feels resolved is
delegated to a model-backed judge. Anything the judge returns that is not a
valid, alternation-preserving decision becomes FINISH.
"""

import json
import logging
import re
from typing import Literal
from typing import Optional
from typing import Protocol

from pydantic import BaseModel
from pydantic import ValidationError

from talk_with_doc.dialogue.prompts import ROUTER_SYSTEM_PROMPT
from talk_with_doc.dialogue.state import FINISH
from talk_with_doc.dialogue.state import DialogueState
from talk_with_doc.dialogue.state import Persona
from talk_with_doc.services.constants import DEFAULTS
from talk_with_doc.services.provider_pool import ProviderPool

logger = logging.getLogger(__name__)

# Who speaks after whom
ALTERNATION = {
    Persona.CRITIC: Persona.CREATIVE,
    Persona.CREATIVE: Persona.CRITIC,
}

ROUTING_OPTIONS = [persona.value for persona in Persona] + [FINISH]

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class RoutingDecision(BaseModel):
    """One routing step: the next persona or FINISH, plus diagnostic reasoning."""

    next: Literal["critic", "creative", "FINISH"]
    reasoning: str = ""

    @classmethod
    def finish(cls, reasoning: str) -> "RoutingDecision":
        return cls(next=FINISH, reasoning=reasoning)

    @classmethod
    def to(cls, persona: Persona, reasoning: str) -> "RoutingDecision":
        return cls(next=persona.value, reasoning=reasoning)

    @property
    def is_finish(self) -> bool:
        return self.next == FINISH


class RoutingJudge(Protocol):
    """Judges whether the exchange on the current topic is resolved."""

    async def judge(self, state: DialogueState, expected: Persona) -> str:
        """Return the raw model output for a routing decision."""
        ...


def parse_decision(raw: str | dict) -> RoutingDecision:
    """
    Parse raw judge output into a decision, failing safe to FINISH.

    Args:
        raw: JSON text (optionally fenced) or an already decoded object

    Returns:
        RoutingDecision: The validated decision, or FINISH when invalid
    """
    try:
        data = raw
        if isinstance(raw, str):
            data = json.loads(_FENCE_RE.sub("", raw.strip()))
        return RoutingDecision.model_validate(data)
    except (ValueError, TypeError, ValidationError) as e:
        logger.warning(f"Invalid routing decision, defaulting to FINISH: {e}")
        return RoutingDecision.finish("Invalid routing decision, defaulting to FINISH")


class TurnRouter:
    """Pure decision function over the dialogue state, with an optional judge."""

    def __init__(
        self,
        judge: Optional[RoutingJudge] = None,
        max_persona_turns: int = DEFAULTS["max_persona_turns"],
        first_persona: Persona = Persona.CRITIC,
    ):
        self.judge = judge
        self.max_persona_turns = max_persona_turns
        self.first_persona = first_persona

    async def decide(self, state: DialogueState) -> RoutingDecision:
        """
        Decide the next step for ``state``.

        Args:
            state: Current dialogue state

        Returns:
            RoutingDecision: Next persona or FINISH
        """
        if not any(message.is_user for message in state.messages):
            return RoutingDecision.finish("No user message to respond to")

        topic = state.persona_messages_since_user()
        if not topic:
            return RoutingDecision.to(self.first_persona, "New user message, critic opens")

        if len(topic) >= self.max_persona_turns:
            return RoutingDecision.finish(f"Reached {self.max_persona_turns} persona turns")

        expected = ALTERNATION[topic[-1].persona]
        if expected not in {message.persona for message in topic}:
            return RoutingDecision.to(expected, "Each persona speaks at least once per topic")

        if self.judge is None:
            return RoutingDecision.finish("Both personas have spoken")

        try:
            raw = await self.judge.judge(state, expected)
        except Exception as e:
            logger.warning(f"Routing judge failed, defaulting to FINISH: {e}")
            return RoutingDecision.finish("Routing judge failed")

        decision = parse_decision(raw)
        if decision.is_finish:
            return decision
        if decision.next != expected.value:
            logger.warning(
                f"Routing judge chose {decision.next} after {topic[-1].speaker}, finishing"
            )
            return RoutingDecision.finish("Judge broke alternation")
        return decision


class ModelRoutingJudge:
    """RoutingJudge backed by a chat completion model."""

    def __init__(self, provider_pool: ProviderPool, model: str):
        self.provider_pool = provider_pool
        self.model = model
        self.logger = logging.getLogger(__name__)

    async def judge(self, state: DialogueState, expected: Persona) -> str:
        topic = state.persona_messages_since_user()
        transcript = "\n".join(f"{message.speaker}: {message.text}" for message in state.messages)
        user_prompt = (
            f"User Request: {state.latest_user_text()}\n\n"
            f"Conversation History:\n{transcript}\n\n"
            f"Dialogue Status:\n"
            f"- Persona turns on this topic: {len(topic)}\n"
            f"- Last persona to speak: {topic[-1].speaker if topic else 'none'}\n\n"
            "Decide whether the dialogue continues or finishes. Respond with valid JSON only."
        )
        payload = {
            "model": self.model,
            "temperature": 0,
            "response_format": {"type": "json_object"},
            "messages": [
                {
                    "role": "system",
                    "content": ROUTER_SYSTEM_PROMPT.format(
                        options=", ".join(ROUTING_OPTIONS), expected=expected.value
                    ),
                },
                {"role": "user", "content": user_prompt},
            ],
        }
        result = await self.provider_pool.chat_completion(payload)
        content = result["choices"][0]["message"].get("content") or ""
        self.logger.debug(f"Routing judge output: {content}")
        return content
