"""
PROMPT COACH - Top-level Driver

Facing the presentation layer: receives raw user text or structured
answers, gates them on the busy flag and the current state, runs the
conversation state machine, and exposes what the UI needs to render.

Turns are strictly serialized: at most one collaborator call is
outstanding per session. There is no cancellation and no timeout.

Usage:
    driver = CoachDriver(LLMCollaborator())
    driver.bus.subscribe_all(render)

    await driver.submit_text("Ich brauche einen Prompt für Produkttexte")
    await driver.submit_answer(["Online-Shop"], other="eher locker")
"""
import asyncio
import logging
from typing import List, Optional, Sequence

from core.schemas import (
    ClarifyingQuestion,
    ConversationState,
    SessionSnapshot,
    StructuredAnswer,
    TranscriptEntry,
    to_builtins,
)
from core.session_store import SessionStore
from coach.collaborator import GenerativeCollaborator
from coach.conversation import ConversationMachine, TurnResult
from infrastructure.config import MessageCatalog, get_message_catalog
from infrastructure.event_bus import EventBus

logger = logging.getLogger(__name__)


class CoachDriver:
    """
    Owns one session and serializes turns through the state machine.
    """

    def __init__(
        self,
        collaborator: GenerativeCollaborator,
        catalog: Optional[MessageCatalog] = None,
        bus: Optional[EventBus] = None,
    ):
        self.catalog = catalog or get_message_catalog()
        self.store = SessionStore(bus=bus)
        self.machine = ConversationMachine(self.store, collaborator, self.catalog)
        self._lock = asyncio.Lock()

    # =========================================================================
    # PRESENTATION READS
    # =========================================================================

    @property
    def bus(self) -> EventBus:
        return self.store.bus

    @property
    def state(self) -> ConversationState:
        return self.store.state

    @property
    def busy(self) -> bool:
        return self.store.busy

    @property
    def transcript(self) -> List[TranscriptEntry]:
        return list(self.store.transcript)

    @property
    def current_question(self) -> Optional[ClarifyingQuestion]:
        return self.store.current_question

    @property
    def accepts_structured_answer(self) -> bool:
        """True when the structured question input should be shown and enabled."""
        return (
            not self.busy
            and self.state is ConversationState.ASKING_QUESTIONS
            and self.current_question is not None
        )

    @property
    def accepts_free_text(self) -> bool:
        """True when the generic text input should be enabled."""
        if self.busy or self.state is ConversationState.DONE:
            return False
        return self.machine.accepts_text()

    def input_hint(self) -> str:
        """Placeholder text for the free-text input."""
        return self.catalog.input_hint(self.state)

    def snapshot(self) -> SessionSnapshot:
        return self.store.get_snapshot()

    def snapshot_payload(self) -> dict:
        """Snapshot as plain builtins, ready for JSON transport."""
        return to_builtins(self.snapshot())

    # =========================================================================
    # INPUT
    # =========================================================================

    async def submit_text(self, text: str) -> Optional[TurnResult]:
        """
        Submit free text.

        Returns:
            The TurnResult, or None if the input was refused
        """
        text = text.strip()
        if not text:
            return None
        if not self.accepts_free_text:
            logger.warning(f"Free text refused (state={self.state.value}, busy={self.busy})")
            return None
        return await self._run(self.machine.handle_text, text)

    async def submit_answer(self, selected_options: Sequence[str], other: str = "") -> Optional[TurnResult]:
        """
        Submit an answer to the outstanding question.

        Chosen options and the free-text addendum are joined into one
        answer string.

        Returns:
            The TurnResult, or None if the input was refused
        """
        answer = StructuredAnswer(selected_options=list(selected_options), other=other.strip()).combine()
        if not answer:
            return None
        if not self.accepts_structured_answer:
            logger.warning(f"Structured answer refused (state={self.state.value}, busy={self.busy})")
            return None
        return await self._run(self.machine.handle_answer, answer)

    async def _run(self, handler, text: str) -> Optional[TurnResult]:
        if self._lock.locked():
            logger.warning("Turn refused: previous turn still in progress")
            return None
        async with self._lock:
            self.store.set_busy(True)
            try:
                return await handler(text)
            finally:
                self.store.set_busy(False)

    def restart(self) -> None:
        """Discard the session and start over (refused while busy)."""
        if self.busy:
            logger.warning("Restart refused: turn in progress")
            return
        self.store.reset()
