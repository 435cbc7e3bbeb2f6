"""
PROMPT COACH SCHEMAS - The Data Contracts of a Coaching Session

This module defines the records that flow between the session store,
the conversation state machine and the generative collaborator:
- ConversationState: The closed set of dialogue states
- TranscriptEntry: One visible message in the conversation
- QnaPair: One finalized question/answer exchange
- ClarifyingQuestion: The question currently awaiting an answer
- NextStepDecision: Tagged union returned by the classifier call
- SessionSnapshot: Read-only view handed to the presentation layer

Design Principles:
1. STRICT TYPING: msgspec.Struct with no silent type coercion
2. KW_ONLY: Enforce keyword arguments to prevent positional mix-ups
3. CLOSED VARIANTS: NextStepDecision is a tagged union; unknown tags
   fail decoding instead of being ignored. Variant payloads are loose
   and validated after decoding, so a malformed payload can degrade
   instead of failing the turn.
"""
import msgspec
from enum import Enum
from typing import Any, List, Optional, Union


# =============================================================================
# ENUMS
# =============================================================================

class ConversationState(str, Enum):
    """
    States of the coaching dialogue.

    INITIAL_PROMPT is the entry state, DONE is terminal.
    GENERATING_PROMPT is only held while the artifact synthesis call
    is outstanding.
    """
    INITIAL_PROMPT = "initial_prompt"
    ASKING_QUESTIONS = "asking_questions"
    GENERATING_PROMPT = "generating_prompt"
    FEEDBACK = "feedback"
    REFINING = "refining"
    AWAITING_NEURO_MEDIA_CHOICE = "awaiting_neuro_media_choice"
    AWAITING_RESTART = "awaiting_restart"
    DONE = "done"


class Speaker(str, Enum):
    """Who authored a transcript entry."""
    USER = "user"
    SYSTEM = "system"


# =============================================================================
# TRANSCRIPT & HISTORY
# =============================================================================

class TranscriptEntry(msgspec.Struct, kw_only=True, frozen=True):
    """
    A single visible message in the conversation.

    Entries are append-only; their order reconstructs the conversation.
    is_artifact marks generated output the user may copy.
    """
    id: int
    speaker: Speaker
    text: str
    is_artifact: bool = False


class QnaPair(msgspec.Struct, kw_only=True, frozen=True):
    """A finalized question/answer exchange recorded in session history."""
    question: str
    answer: str


class ClarifyingQuestion(msgspec.Struct, kw_only=True, frozen=True):
    """
    A clarifying question with suggested answers.

    Held only while the question is outstanding; replaced on each new
    question.
    """
    question: str
    options: List[str]


# =============================================================================
# NEXT STEP DECISION (tagged union, wire tag field: "type")
# =============================================================================

class QuestionDraft(msgspec.Struct, kw_only=True, frozen=True):
    """
    Unvalidated question object, as produced by the generative service.

    Fields are typed loosely so that a malformed payload still decodes;
    validate_question() decides whether it is usable.
    """
    question: Any = None
    options: Any = None


def validate_question(draft: Any) -> Optional[ClarifyingQuestion]:
    """
    Turn a question draft into a ClarifyingQuestion, or None if malformed.

    Accepts a QuestionDraft or a raw JSON object; any other shape (string,
    list, number, null) is malformed. The question must be a non-blank
    string and options must be a list (possibly empty). Non-string and
    blank options are dropped.
    """
    if isinstance(draft, dict):
        try:
            draft = msgspec.convert(draft, type=QuestionDraft)
        except msgspec.ValidationError:
            return None
    if not isinstance(draft, QuestionDraft):
        return None
    if not isinstance(draft.question, str) or not draft.question.strip():
        return None
    if not isinstance(draft.options, list):
        return None
    options = [option for option in draft.options if isinstance(option, str) and option.strip()]
    return ClarifyingQuestion(question=draft.question, options=options)


class Explanation(msgspec.Struct, kw_only=True, frozen=True, tag="explanation", tag_field="type"):
    """
    The user asked a counter-question; explain the last question.

    text is not type-checked on decode; the turn classifier substitutes
    an apology when it is not a usable string.
    """
    text: Any = None


class NextQuestion(msgspec.Struct, kw_only=True, frozen=True, tag="next_question", tag_field="type"):
    """
    Ask another clarifying question.

    Only the tag is enforced on decode: question arrives as whatever JSON
    the service sent (usually an object, decoded to a dict) and is checked
    with validate_question().
    """
    question: Any = None


class GeneratePrompt(msgspec.Struct, kw_only=True, frozen=True, tag="generate_prompt", tag_field="type"):
    """Enough information was collected; synthesize the artifact."""
    pass


NextStepDecision = Union[Explanation, NextQuestion, GeneratePrompt]


# =============================================================================
# INPUT
# =============================================================================

class StructuredAnswer(msgspec.Struct, kw_only=True, frozen=True):
    """
    An answer given through the structured question input.

    Chosen options plus an optional free-text addendum, combined into
    one answer string.
    """
    selected_options: List[str] = []
    other: str = ""

    def combine(self, delimiter: str = ", ") -> str:
        """Join the non-empty parts in order, options first."""
        parts = [part for part in [*self.selected_options, self.other] if part]
        return delimiter.join(parts).strip()


# =============================================================================
# SNAPSHOT
# =============================================================================

class SessionSnapshot(msgspec.Struct, kw_only=True, frozen=True):
    """Read-only view of a session for the presentation layer."""
    initial_request: str
    history: List[QnaPair]
    current_artifact: str
    state: ConversationState
    transcript: List[TranscriptEntry]
    current_question: Optional[ClarifyingQuestion] = None
    busy: bool = False


def to_builtins(snapshot: SessionSnapshot) -> dict:
    """Convert a snapshot to plain dicts/lists (for JSON transport)."""
    return msgspec.to_builtins(snapshot)
