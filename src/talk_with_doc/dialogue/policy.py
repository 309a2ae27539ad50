"""
History and context policies applied before a turn starts.
"""

from collections.abc import Sequence

from talk_with_doc.dialogue.state import DialogueMessage
from talk_with_doc.services.constants import DEFAULTS


def context_window_policy(
    history: Sequence[DialogueMessage], user_window: int = DEFAULTS["resume_user_window"]
) -> list[DialogueMessage]:
    """
    Trim history for a turn that resumes after an interruption.

    Only the last ``user_window`` user messages survive; persona messages are
    dropped so the personas do not anchor on replies the user cut off.

    Args:
        history: Prior messages, oldest first
        user_window: Number of trailing user messages to keep

    Returns:
        list[DialogueMessage]: The kept user messages, oldest first
    """
    if user_window <= 0:
        return []
    user_messages = [message for message in history if message.is_user]
    return user_messages[-user_window:]


def trim_history(
    history: Sequence[DialogueMessage], max_messages: int = DEFAULTS["max_history_messages"]
) -> list[DialogueMessage]:
    """Keep the last ``max_messages`` messages of a completed conversation."""
    if max_messages <= 0:
        return []
    return list(history[-max_messages:])


def truncate_document(text: str | None, max_chars: int = DEFAULTS["document_context_chars"]) -> str:
    """Cut the document snapshot handed to the personas to ``max_chars``."""
    if not text:
        return ""
    return text[:max_chars]
