"""
Persona responders for the critic and the creative voice.

Each persona is a ``PersonaProfile`` (prompt and voice) served by a
``PersonaResponder``. The orchestrator only sees the dispatch table built by
``build_responders``; adding a persona means adding a profile here.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from talk_with_doc.dialogue.prompts import CREATIVE_SYSTEM_PROMPT
from talk_with_doc.dialogue.prompts import CRITIC_SYSTEM_PROMPT
from talk_with_doc.dialogue.prompts import DOCUMENT_CONTEXT_TEMPLATE
from talk_with_doc.dialogue.state import DialogueMessage
from talk_with_doc.dialogue.state import DialogueState
from talk_with_doc.dialogue.state import Persona
from talk_with_doc.voice.generation import SpeechGenerator

DEGRADED_REPLY = "I lost my voice for a moment, so here is the short version: {topic}"


@dataclass(frozen=True)
class PersonaProfile:
    """Fixed style configuration of one persona."""

    persona: Persona
    display_name: str
    system_prompt: str
    voice: str


def default_profiles(critic_voice: str = "onyx", creative_voice: str = "nova") -> dict:
    """Build the persona profiles keyed by persona."""
    return {
        Persona.CRITIC: PersonaProfile(
            persona=Persona.CRITIC,
            display_name="Critic",
            system_prompt=CRITIC_SYSTEM_PROMPT,
            voice=critic_voice,
        ),
        Persona.CREATIVE: PersonaProfile(
            persona=Persona.CREATIVE,
            display_name="Creative",
            system_prompt=CREATIVE_SYSTEM_PROMPT,
            voice=creative_voice,
        ),
    }


def to_provider_messages(
    messages: list[DialogueMessage], profiles: dict[Persona, PersonaProfile]
) -> list[dict[str, str]]:
    """Render the history as chat messages; persona lines carry the speaker name."""
    rendered = []
    for message in messages:
        if message.is_user:
            rendered.append({"role": "user", "content": message.text})
        else:
            name = profiles[message.persona].display_name
            rendered.append({"role": "assistant", "content": f"{name}: {message.text}"})
    return rendered


class PersonaResponder:
    """
    Produces one reply for its persona from the current dialogue state.

    Contract:
        * If the interrupt token is already set, nothing is generated and
          ``respond`` returns None.
        * Otherwise exactly one text reply is produced, with at most one
          audio rendering. When the audio-capable call fails the responder
          degrades to a text-only reply instead of failing the turn.
    """

    def __init__(
        self,
        profile: PersonaProfile,
        generator: SpeechGenerator,
        profiles: Optional[dict[Persona, PersonaProfile]] = None,
    ):
        self.profile = profile
        self.generator = generator
        self.profiles = profiles or {profile.persona: profile}
        self.logger = logging.getLogger(__name__)

    @property
    def persona(self) -> Persona:
        return self.profile.persona

    def system_prompt(self, state: DialogueState) -> str:
        prompt = self.profile.system_prompt
        if state.document_context:
            prompt += DOCUMENT_CONTEXT_TEMPLATE.format(document=state.document_context)
        return prompt

    async def respond(self, state: DialogueState) -> Optional[DialogueMessage]:
        """
        Generate this persona's reply.

        Args:
            state: Current dialogue state

        Returns:
            Optional[DialogueMessage]: The reply, or None when interrupted
        """
        if state.token.is_set:
            self.logger.info(f"[{state.correlation_id}] {self.persona.value} skipped: interrupted")
            return None

        system_prompt = self.system_prompt(state)
        messages = to_provider_messages(state.messages, self.profiles)

        try:
            speech = await self.generator.generate_speech(
                system_prompt, messages, self.profile.voice
            )
            return DialogueMessage(text=speech.text, persona=self.persona, audio=speech.audio)
        except Exception as e:
            self.logger.warning(
                f"[{state.correlation_id}] {self.persona.value} audio generation failed, "
                f"falling back to text: {e}"
            )

        try:
            text = await self.generator.generate_text(system_prompt, messages)
        except Exception as e:
            self.logger.error(
                f"[{state.correlation_id}] {self.persona.value} text fallback failed: {e}"
            )
            text = DEGRADED_REPLY.format(topic=state.latest_user_text() or "ask me again.")
        return DialogueMessage(text=text, persona=self.persona, audio=None)


def build_responders(
    generator: SpeechGenerator, profiles: Optional[dict[Persona, PersonaProfile]] = None
) -> dict[Persona, PersonaResponder]:
    """Build the persona dispatch table."""
    profiles = profiles or default_profiles()
    return {
        persona: PersonaResponder(profile, generator, profiles)
        for persona, profile in profiles.items()
    }
