"""
PROMPT COACH SESSION STORE - Exclusive Owner of Session State

Holds everything that lives for one end-to-end coaching run:
- the visible transcript
- the original request and the accumulated question/answer history
- the current artifact text
- the conversation state, outstanding question and busy flag

The store performs no validation beyond type shape; invariants are the
state machine's job. Every mutation is published on the EventBus so the
presentation layer can re-render.
"""
import itertools
import logging
from typing import List, Optional

from core.schemas import (
    ClarifyingQuestion,
    ConversationState,
    QnaPair,
    SessionSnapshot,
    Speaker,
    TranscriptEntry,
)
from infrastructure.event_bus import EventBus, EventType, get_event_bus

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Pure state container for a single coaching session.

    Usage:
        store = SessionStore()
        store.append_message("Hallo", Speaker.USER)
        store.set_state(ConversationState.ASKING_QUESTIONS)
        snapshot = store.get_snapshot()
    """

    SOURCE = "session_store"

    def __init__(self, bus: Optional[EventBus] = None):
        self.bus = bus or get_event_bus()
        # Entry ids stay monotonic across resets
        self._ids = itertools.count(1)
        self._clear()

    def _clear(self) -> None:
        self.transcript: List[TranscriptEntry] = []
        self.history: List[QnaPair] = []
        self.initial_request: str = ""
        self.current_artifact: str = ""
        self.current_question: Optional[ClarifyingQuestion] = None
        self.state: ConversationState = ConversationState.INITIAL_PROMPT
        self.busy: bool = False

    def _emit(self, event_type: EventType, **payload) -> None:
        self.bus.emit(event_type, payload, source=self.SOURCE)

    # =========================================================================
    # TRANSCRIPT
    # =========================================================================

    def next_entry_id(self) -> int:
        return next(self._ids)

    def append(self, entry: TranscriptEntry) -> TranscriptEntry:
        """Append an entry to the transcript."""
        self.transcript.append(entry)
        self._emit(
            EventType.ENTRY_APPENDED,
            id=entry.id,
            speaker=entry.speaker.value,
            text=entry.text,
            is_artifact=entry.is_artifact,
        )
        return entry

    def append_message(self, text: str, speaker: Speaker, is_artifact: bool = False) -> TranscriptEntry:
        """Build an entry with the next id and append it."""
        entry = TranscriptEntry(
            id=self.next_entry_id(),
            speaker=speaker,
            text=text,
            is_artifact=is_artifact,
        )
        return self.append(entry)

    # =========================================================================
    # HISTORY & ARTIFACT
    # =========================================================================

    def set_initial_request(self, text: str) -> None:
        self.initial_request = text

    def record_qna_pair(self, pair: QnaPair) -> None:
        """Append a finalized question/answer pair to history."""
        self.history.append(pair)
        self._emit(EventType.QNA_RECORDED, question=pair.question, answer=pair.answer, count=len(self.history))

    def set_artifact(self, text: str) -> None:
        """Replace the current artifact."""
        self.current_artifact = text
        self._emit(EventType.ARTIFACT_CHANGED, text=text)

    def append_to_artifact(self, suffix: str) -> None:
        """Append a suffix to the current artifact."""
        self.current_artifact += suffix
        self._emit(EventType.ARTIFACT_CHANGED, text=self.current_artifact)

    # =========================================================================
    # CONTROL STATE
    # =========================================================================

    def set_question(self, question: Optional[ClarifyingQuestion]) -> None:
        """Set (or clear, with None) the outstanding clarifying question."""
        self.current_question = question
        self._emit(
            EventType.QUESTION_CHANGED,
            question=question.question if question else None,
            options=list(question.options) if question else [],
        )

    def set_state(self, state: ConversationState) -> None:
        if state is self.state:
            return
        previous = self.state
        self.state = state
        self._emit(EventType.STATE_CHANGED, previous=previous.value, state=state.value)

    def set_busy(self, busy: bool) -> None:
        if busy == self.busy:
            return
        self.busy = busy
        self._emit(EventType.BUSY_CHANGED, busy=busy)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def reset(self) -> None:
        """
        Discard the whole session and return to INITIAL_PROMPT.

        Idempotent: resetting a fresh store yields the same fresh store.
        """
        busy = self.busy
        self._clear()
        # A reset during a turn keeps the turn's busy flag; the driver clears it.
        self.busy = busy
        logger.info("Session reset")
        self._emit(EventType.SESSION_RESET, state=self.state.value)

    def get_snapshot(self) -> SessionSnapshot:
        """Return a read-only copy of the current session."""
        return SessionSnapshot(
            initial_request=self.initial_request,
            history=list(self.history),
            current_artifact=self.current_artifact,
            state=self.state,
            transcript=list(self.transcript),
            current_question=self.current_question,
            busy=self.busy,
        )
