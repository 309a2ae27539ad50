"""
Critic/creative dialogue engine.
"""

from talk_with_doc.dialogue.orchestrator import DialogueOrchestrator
from talk_with_doc.dialogue.personas import PersonaResponder
from talk_with_doc.dialogue.personas import build_responders
from talk_with_doc.dialogue.router import RoutingDecision
from talk_with_doc.dialogue.router import TurnRouter
from talk_with_doc.dialogue.state import DialogueMessage
from talk_with_doc.dialogue.state import DialogueState
from talk_with_doc.dialogue.state import InterruptToken
from talk_with_doc.dialogue.state import Persona
from talk_with_doc.dialogue.state import TurnResult
from talk_with_doc.dialogue.state import TurnStatus

__all__ = [
    "DialogueMessage",
    "DialogueOrchestrator",
    "DialogueState",
    "InterruptToken",
    "Persona",
    "PersonaResponder",
    "RoutingDecision",
    "TurnResult",
    "TurnRouter",
    "TurnStatus",
    "build_responders",
]
