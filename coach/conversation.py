"""
PROMPT COACH - Conversation State Machine

The orchestration core. On each user turn it takes the current state and
the input, calls the generative collaborator where needed, and commits
the resulting transcript entries, history and state to the SessionStore.

States:
    INITIAL_PROMPT -> ASKING_QUESTIONS -> GENERATING_PROMPT -> FEEDBACK
    FEEDBACK -> AWAITING_NEURO_MEDIA_CHOICE -> AWAITING_RESTART
    FEEDBACK -> REFINING -> FEEDBACK
    AWAITING_RESTART -> DONE | INITIAL_PROMPT (full reset)

Transitions are atomic: history, artifact, initial request and the
outstanding question only change after the collaborator call succeeds
and its response validates. A GenerationFailure is answered with exactly
one apology entry and leaves the state where it was.
"""
import logging
from typing import Awaitable, Callable, Dict, List, Optional

import msgspec

from core.schemas import (
    ClarifyingQuestion,
    ConversationState,
    Explanation,
    GeneratePrompt,
    NextQuestion,
    QnaPair,
    Speaker,
    TranscriptEntry,
)
from core.session_store import SessionStore
from coach.collaborator import GenerationFailure, GenerativeCollaborator
from coach.turn_classifier import TurnClassifier
from infrastructure.config import MessageCatalog

logger = logging.getLogger(__name__)


class TurnResult(msgspec.Struct, kw_only=True):
    """Outcome of one user turn."""
    accepted: bool
    state_before: ConversationState
    state_after: ConversationState
    entries: List[TranscriptEntry] = []


def is_affirmative(text: str, token: str) -> bool:
    """
    Prefix test for a "yes" answer.

    Case-insensitive, ignores surrounding whitespace. Anything else,
    including empty input, is negative. Longer words sharing the prefix
    also count as "yes".
    """
    return bool(token) and text.strip().lower().startswith(token)


class ConversationMachine:
    """
    Drives one coaching session through its states.

    Usage:
        machine = ConversationMachine(store, collaborator, catalog)
        await machine.handle_text("Ich brauche einen Prompt für Blogartikel")
        await machine.handle_answer("Marketing, Social Media")
    """

    def __init__(
        self,
        store: SessionStore,
        collaborator: GenerativeCollaborator,
        catalog: MessageCatalog,
        classifier: Optional[TurnClassifier] = None,
    ):
        self.store = store
        self.collaborator = collaborator
        self.catalog = catalog
        self.classifier = classifier or TurnClassifier(collaborator, catalog)
        self._turn_entries: List[TranscriptEntry] = []

        self._text_handlers: Dict[ConversationState, Callable[[str], Awaitable[None]]] = {
            ConversationState.INITIAL_PROMPT: self._on_initial_prompt,
            ConversationState.FEEDBACK: self._on_feedback,
            ConversationState.REFINING: self._on_refinement,
            ConversationState.AWAITING_NEURO_MEDIA_CHOICE: self._on_trailer_choice,
            ConversationState.AWAITING_RESTART: self._on_restart_choice,
        }

    @property
    def state(self) -> ConversationState:
        return self.store.state

    def is_affirmative(self, text: str) -> bool:
        return is_affirmative(text, self.catalog.affirmative_token)

    def accepts_text(self) -> bool:
        """Whether the current state takes free-text input."""
        return self.state in self._text_handlers

    # =========================================================================
    # TRANSCRIPT HELPERS
    # =========================================================================

    def _echo(self, text: str) -> None:
        self._turn_entries.append(self.store.append_message(text, Speaker.USER))

    def _say(self, text: str, is_artifact: bool = False) -> None:
        self._turn_entries.append(self.store.append_message(text, Speaker.SYSTEM, is_artifact=is_artifact))

    def _say_key(self, key: str) -> None:
        self._say(self.catalog.get(key))

    def _apologize(self, key: str, error: GenerationFailure) -> None:
        logger.error(f"Collaborator call failed in {self.state.value}: {error}")
        self._say_key(key)

    async def _run_turn(self, handler: Callable[[str], Awaitable[None]], text: str) -> TurnResult:
        state_before = self.state
        self._turn_entries = []
        await handler(text)
        entries, self._turn_entries = self._turn_entries, []
        logger.info(f"Turn handled: {state_before.value} -> {self.state.value}")
        return TurnResult(
            accepted=True,
            state_before=state_before,
            state_after=self.state,
            entries=entries,
        )

    def _ignored(self, reason: str) -> TurnResult:
        logger.warning(f"Input ignored in {self.state.value}: {reason}")
        return TurnResult(accepted=False, state_before=self.state, state_after=self.state)

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    async def handle_text(self, text: str) -> TurnResult:
        """
        Handle a free-text submission.

        Ignored while a clarifying question is outstanding (structured
        input is required), while generating, and once DONE.
        """
        handler = self._text_handlers.get(self.state)
        if handler is None:
            return self._ignored("free text not accepted")
        if self.state is ConversationState.INITIAL_PROMPT and not text.strip():
            return self._ignored("empty request")
        return await self._run_turn(handler, text)

    async def handle_answer(self, answer: str) -> TurnResult:
        """Handle an answer to the outstanding clarifying question."""
        if self.state is not ConversationState.ASKING_QUESTIONS or self.store.current_question is None:
            return self._ignored("no outstanding question")
        if not answer.strip():
            return self._ignored("empty answer")
        return await self._run_turn(self._on_answer, answer)

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def _on_initial_prompt(self, text: str) -> None:
        self._echo(text)
        try:
            question = await self.collaborator.propose_first_question(text)
        except GenerationFailure as e:
            self._apologize("first_question_failed", e)
            return

        self.store.set_initial_request(text)
        self.store.set_question(question)
        self._say(question.question)
        self.store.set_state(ConversationState.ASKING_QUESTIONS)

    async def _on_answer(self, answer: str) -> None:
        current = self.store.current_question
        # The classifier sees the conversation up to, not including, this answer
        transcript = list(self.store.transcript)
        self._echo(answer)

        try:
            decision = await self.classifier.classify(transcript, current.question, answer)
        except GenerationFailure as e:
            self._apologize("turn_failed", e)
            return

        pair = QnaPair(question=current.question, answer=answer)

        if isinstance(decision, Explanation):
            self._say(decision.text)
        elif isinstance(decision, NextQuestion):
            question = ClarifyingQuestion(
                question=decision.question.question,
                options=list(decision.question.options),
            )
            self.store.record_qna_pair(pair)
            self.store.set_question(question)
            self._say(question.question)
        elif isinstance(decision, GeneratePrompt):
            await self._generate_artifact(pair)
        else:
            raise TypeError(f"Unhandled decision type: {type(decision).__name__}")

    async def _generate_artifact(self, pair: QnaPair) -> None:
        notice = "generating_fallback_notice" if self.classifier.last_was_fallback else "generating_notice"
        self._say_key(notice)

        previous_state = self.state
        self.store.set_state(ConversationState.GENERATING_PROMPT)
        try:
            artifact = await self.collaborator.synthesize_artifact(
                self.store.initial_request,
                [*self.store.history, pair],
            )
        except GenerationFailure as e:
            self.store.set_state(previous_state)
            self._apologize("turn_failed", e)
            return

        if not artifact:
            logger.warning("Synthesized artifact is empty; accepting it as is")

        self.store.record_qna_pair(pair)
        self.store.set_question(None)
        self.store.set_artifact(artifact)
        self._say(artifact, is_artifact=True)
        self._say_key("feedback_question")
        self.store.set_state(ConversationState.FEEDBACK)

    async def _on_feedback(self, text: str) -> None:
        self._echo(text)
        if self.is_affirmative(text):
            self._say_key("trailer_question")
            self.store.set_state(ConversationState.AWAITING_NEURO_MEDIA_CHOICE)
        else:
            self._say_key("missing_details_question")
            self.store.set_state(ConversationState.REFINING)

    async def _on_refinement(self, text: str) -> None:
        self._echo(text)
        self._say_key("refining_notice")
        try:
            revised = await self.collaborator.revise_artifact(self.store.current_artifact, text)
        except GenerationFailure as e:
            self._apologize("refine_failed", e)
            return

        self.store.set_artifact(revised)
        self._say(revised, is_artifact=True)
        self._say_key("refined_feedback_question")
        self.store.set_state(ConversationState.FEEDBACK)

    async def _on_trailer_choice(self, text: str) -> None:
        self._echo(text)
        if self.is_affirmative(text):
            self.store.append_to_artifact(self.catalog.trailer_text)
            self._say_key("trailer_applied")
            self._say(self.store.current_artifact, is_artifact=True)

        self._say_key("closing_success")
        self._say_key("restart_question")
        self.store.set_state(ConversationState.AWAITING_RESTART)

    async def _on_restart_choice(self, text: str) -> None:
        if self.is_affirmative(text):
            self.store.reset()
            self.classifier.last_was_fallback = False
            return

        self._echo(text)
        self._say_key("farewell")
        self.store.set_state(ConversationState.DONE)
