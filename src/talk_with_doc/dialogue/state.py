"""
Dialogue state for one turn of the critic/creative conversation.

A turn starts from a user utterance and ends when the router finishes or an
interruption is observed. The interrupt token is the only cancellation
channel: it is shared by reference between the connection session and the
orchestrator run it started.
"""

import uuid
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import Optional


class Persona(str, Enum):
    """The two fixed dialogue personas."""

    CRITIC = "critic"
    CREATIVE = "creative"


FINISH = "FINISH"


@dataclass(frozen=True)
class DialogueMessage:
    """One entry of the message history. ``persona`` is None for the user."""

    text: str
    persona: Optional[Persona] = None
    audio: Optional[str] = None

    @classmethod
    def from_user(cls, text: str) -> "DialogueMessage":
        return cls(text=text)

    @property
    def is_user(self) -> bool:
        return self.persona is None

    @property
    def speaker(self) -> str:
        return "user" if self.persona is None else self.persona.value


class InterruptState(Enum):
    """Tri-state interruption flag."""

    NOT_INTERRUPTED = "not_interrupted"
    INTERRUPTED = "interrupted"
    CONSUMED = "consumed"


class InterruptToken:
    """
    Cooperative cancellation token for one orchestration run.

    Invariants:
        * Once interrupted the token never returns to NOT_INTERRUPTED; a new
          utterance gets a new token instead.
        * ``consume`` only acknowledges an interruption (INTERRUPTED ->
          CONSUMED); ``is_set`` stays true afterwards.
        * Holders re-check ``is_set`` after every suspension point.
    """

    def __init__(self):
        self.state = InterruptState.NOT_INTERRUPTED

    @property
    def is_set(self) -> bool:
        return self.state is not InterruptState.NOT_INTERRUPTED

    def interrupt(self) -> None:
        if self.state is InterruptState.NOT_INTERRUPTED:
            self.state = InterruptState.INTERRUPTED

    def consume(self) -> None:
        if self.state is InterruptState.INTERRUPTED:
            self.state = InterruptState.CONSUMED

    def __repr__(self) -> str:
        return f"InterruptToken({self.state.value})"


class TurnStatus(Enum):
    """Terminal status of a turn."""

    COMPLETED = "completed"
    INTERRUPTED = "interrupted"


@dataclass
class DialogueState:
    """Mutable state owned by the orchestrator for the lifetime of one turn."""

    document_context: str
    token: InterruptToken
    messages: list[DialogueMessage] = field(default_factory=list)
    next: Optional[str] = None
    outputs: list[DialogueMessage] = field(default_factory=list)
    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def append(self, message: DialogueMessage) -> None:
        """Append to the history; persona messages also count as outputs."""
        self.messages.append(message)
        if not message.is_user:
            self.outputs.append(message)

    def persona_messages_since_user(self) -> list[DialogueMessage]:
        """Persona messages that follow the most recent user message."""
        topic: list[DialogueMessage] = []
        for message in reversed(self.messages):
            if message.is_user:
                break
            topic.append(message)
        topic.reverse()
        return topic

    def latest_user_text(self) -> str:
        for message in reversed(self.messages):
            if message.is_user:
                return message.text
        return ""


@dataclass
class TurnResult:
    """Outcome of one orchestrator run."""

    correlation_id: str
    user_text: str
    document_context: str
    status: TurnStatus
    outputs: list[DialogueMessage]
    history: list[DialogueMessage]

    @property
    def interrupted(self) -> bool:
        return self.status is TurnStatus.INTERRUPTED
