"""
Dialogue Orchestrator running one critic/creative turn.

The orchestrator alternates between asking the Turn Router for a decision
and invoking the named persona, handing every reply to the caller as soon as
it exists. Cancellation is cooperative: the shared ``InterruptToken`` is
re-checked after every suspension point and an interrupted turn ends early
with the outputs produced so far.
"""

import logging
import uuid
from typing import Awaitable
from typing import Callable
from typing import Optional
from typing import Sequence

from talk_with_doc.dialogue.personas import PersonaResponder
from talk_with_doc.dialogue.policy import context_window_policy
from talk_with_doc.dialogue.policy import trim_history
from talk_with_doc.dialogue.policy import truncate_document
from talk_with_doc.dialogue.router import TurnRouter
from talk_with_doc.dialogue.state import FINISH
from talk_with_doc.dialogue.state import DialogueMessage
from talk_with_doc.dialogue.state import DialogueState
from talk_with_doc.dialogue.state import InterruptToken
from talk_with_doc.dialogue.state import Persona
from talk_with_doc.dialogue.state import TurnResult
from talk_with_doc.dialogue.state import TurnStatus
from talk_with_doc.services.constants import DEFAULTS

logger = logging.getLogger(__name__)

OutputCallback = Callable[[DialogueMessage], Awaitable[None]]


class DialogueOrchestrator:
    """
    Executes Turn Router decisions until FINISH or interruption.

    Invariants:
        * Persona steps run strictly one after another.
        * The token is checked before routing, before each persona step,
          after each persona step and before each delivery. Once it is set
          no further router decision or persona step is started.
        * A reply that completes after the interruption is discarded and
          never delivered.
    """

    def __init__(
        self,
        router: TurnRouter,
        responders: dict[Persona, PersonaResponder],
        max_history_messages: int = DEFAULTS["max_history_messages"],
        resume_user_window: int = DEFAULTS["resume_user_window"],
        document_context_chars: int = DEFAULTS["document_context_chars"],
    ):
        self.router = router
        self.responders = responders
        self.max_history_messages = max_history_messages
        self.resume_user_window = resume_user_window
        self.document_context_chars = document_context_chars

    async def run_turn(
        self,
        user_text: str,
        document_context: str = "",
        prior_history: Sequence[DialogueMessage] = (),
        token: Optional[InterruptToken] = None,
        on_output: Optional[OutputCallback] = None,
        correlation_id: Optional[str] = None,
    ) -> TurnResult:
        """
        Run one turn for a new user message.

        Args:
            user_text: Transcribed user utterance
            document_context: Document text, truncated before use
            prior_history: Messages of earlier turns, oldest first
            token: Interrupt token shared with the caller
            on_output: Awaited with each persona reply as it is produced
            correlation_id: Identity of this run; generated when omitted

        Returns:
            TurnResult: Outputs, final history and terminal status
        """
        token = token or InterruptToken()
        state = DialogueState(
            document_context=truncate_document(document_context, self.document_context_chars),
            token=token,
            messages=trim_history(prior_history, self.max_history_messages),
            correlation_id=correlation_id or str(uuid.uuid4()),
        )
        state.append(DialogueMessage.from_user(user_text))
        logger.info(
            f"[{state.correlation_id}] Turn started with {len(state.messages) - 1} prior messages"
        )

        while True:
            if token.is_set:
                return self._interrupted(state, user_text, "before routing")

            decision = await self.router.decide(state)
            state.next = decision.next
            logger.info(f"[{state.correlation_id}] Route -> {decision.next}: {decision.reasoning}")
            if token.is_set:
                return self._interrupted(state, user_text, "after routing")

            responder = self._responder_for(state)
            if responder is None:
                break

            if token.is_set:
                return self._interrupted(state, user_text, f"before {responder.persona.value}")

            message = await responder.respond(state)

            if token.is_set:
                return self._interrupted(state, user_text, f"after {responder.persona.value}")
            if message is None:
                logger.warning(f"[{state.correlation_id}] {responder.persona.value} gave no reply")
                break

            state.append(message)
            if on_output is not None:
                await on_output(message)

        logger.info(f"[{state.correlation_id}] Turn completed with {len(state.outputs)} replies")
        return self._result(state, user_text, TurnStatus.COMPLETED)

    async def resume_with_interruption(
        self,
        user_text: str,
        document_context: str = "",
        prior_history: Sequence[DialogueMessage] = (),
        token: Optional[InterruptToken] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> TurnResult:
        """
        Start a fresh turn after the previous one was interrupted.

        Only the trailing user messages selected by ``context_window_policy``
        are carried over, and the run gets a new correlation identity.
        """
        seed = context_window_policy(prior_history, self.resume_user_window)
        correlation_id = str(uuid.uuid4())
        logger.info(f"[{correlation_id}] Resuming after interruption with {len(seed)} user messages")
        return await self.run_turn(
            user_text,
            document_context=document_context,
            prior_history=seed,
            token=token,
            on_output=on_output,
            correlation_id=correlation_id,
        )

    def _responder_for(self, state: DialogueState) -> Optional[PersonaResponder]:
        if state.next == FINISH:
            return None
        try:
            persona = Persona(state.next)
        except ValueError:
            logger.warning(
                f"[{state.correlation_id}] Unrecognized routing decision {state.next!r}, finishing"
            )
            return None
        responder = self.responders.get(persona)
        if responder is None:
            logger.warning(f"[{state.correlation_id}] No responder for {persona.value}, finishing")
        return responder

    def _interrupted(self, state: DialogueState, user_text: str, where: str) -> TurnResult:
        state.token.consume()
        logger.info(
            f"[{state.correlation_id}] Turn interrupted {where} with {len(state.outputs)} replies"
        )
        return self._result(state, user_text, TurnStatus.INTERRUPTED)

    @staticmethod
    def _result(state: DialogueState, user_text: str, status: TurnStatus) -> TurnResult:
        return TurnResult(
            correlation_id=state.correlation_id,
            user_text=user_text,
            document_context=state.document_context,
            status=status,
            outputs=list(state.outputs),
            history=list(state.messages),
        )
