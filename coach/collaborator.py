"""
PROMPT COACH - Generative Collaborator

The state machine consumes the generative text service through four
async operations. Each is a single request with no retry and no local
state; every failure surfaces as GenerationFailure.

Implementations:
- GenerativeCollaborator: abstract interface
- LLMCollaborator: LiteLLM-backed implementation using StructuredLLM
"""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from core.llm import LLMError, StructuredLLM, get_llm
from core.schemas import (
    ClarifyingQuestion,
    NextStepDecision,
    QnaPair,
    QuestionDraft,
    TranscriptEntry,
    validate_question,
)
from coach.prompts import (
    build_first_question_prompt,
    build_next_step_prompt,
    build_revision_prompt,
    build_synthesis_prompt,
)
from infrastructure.config import get_settings

logger = logging.getLogger(__name__)


class GenerationFailure(Exception):
    """The collaborator call errored or returned an invalid structure."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation}: {message}")
        self.operation = operation


# =============================================================================
# INTERFACE
# =============================================================================

class GenerativeCollaborator(ABC):
    """
    Abstract generative text service.

    All operations are pure from the caller's point of view and raise
    GenerationFailure on any error.
    """

    @abstractmethod
    async def propose_first_question(self, initial_request: str) -> ClarifyingQuestion:
        """Ask the most important clarifying question for a fresh request."""

    @abstractmethod
    async def decide_next_step(
        self,
        transcript: List[TranscriptEntry],
        last_question: str,
        last_answer: str,
    ) -> NextStepDecision:
        """Classify the last answer into explanation / next question / generate."""

    @abstractmethod
    async def synthesize_artifact(self, initial_request: str, qna_history: Sequence[QnaPair]) -> str:
        """Write the optimized prompt from the request and Q&A history."""

    @abstractmethod
    async def revise_artifact(self, current_artifact: str, feedback: str) -> str:
        """Rewrite the artifact according to user feedback."""


# =============================================================================
# LITELLM IMPLEMENTATION
# =============================================================================

class LLMCollaborator(GenerativeCollaborator):
    """
    Collaborator backed by StructuredLLM.

    Structured calls (first question, next step) decode into msgspec
    types; text calls (synthesis, revision) return the stripped text.
    An empty-but-successful text response is returned as is.
    """

    def __init__(
        self,
        llm: Optional[StructuredLLM] = None,
        synthesis_temperature: Optional[float] = None,
        revision_temperature: Optional[float] = None,
    ):
        settings = get_settings().llm
        self._llm = llm
        self.synthesis_temperature = (
            settings.synthesis_temperature if synthesis_temperature is None else synthesis_temperature
        )
        self.revision_temperature = (
            settings.revision_temperature if revision_temperature is None else revision_temperature
        )

    @property
    def llm(self) -> StructuredLLM:
        return self._llm or get_llm()

    async def propose_first_question(self, initial_request: str) -> ClarifyingQuestion:
        system_prompt, user_prompt = build_first_question_prompt(initial_request)
        try:
            draft = await self.llm.agenerate(
                system_prompt, user_prompt, schema=QuestionDraft, contract=ClarifyingQuestion
            )
        except LLMError as e:
            logger.error(f"Error getting first question: {e}")
            raise GenerationFailure("propose_first_question", "Could not generate the first question.") from e

        # Same policy as later questions: stray options are dropped, a bad shape fails
        question = validate_question(draft)
        if question is None:
            logger.error(f"Invalid response format from API for the first question: {draft!r}")
            raise GenerationFailure("propose_first_question", "Invalid response format for the first question.")
        return question

    async def decide_next_step(
        self,
        transcript: List[TranscriptEntry],
        last_question: str,
        last_answer: str,
    ) -> NextStepDecision:
        system_prompt, user_prompt = build_next_step_prompt(transcript, last_question, last_answer)
        try:
            # Missing or unknown "type" tags fail decoding here
            return await self.llm.agenerate(system_prompt, user_prompt, schema=NextStepDecision)
        except LLMError as e:
            logger.error(f"Error getting next step: {e}")
            raise GenerationFailure("decide_next_step", "Could not determine the next step.") from e

    async def synthesize_artifact(self, initial_request: str, qna_history: Sequence[QnaPair]) -> str:
        system_prompt, user_prompt = build_synthesis_prompt(initial_request, qna_history)
        try:
            return await self.llm.acomplete(system_prompt, user_prompt, temperature=self.synthesis_temperature)
        except LLMError as e:
            logger.error(f"Error generating optimized prompt: {e}")
            raise GenerationFailure("synthesize_artifact", "Could not generate the optimized prompt.") from e

    async def revise_artifact(self, current_artifact: str, feedback: str) -> str:
        system_prompt, user_prompt = build_revision_prompt(current_artifact, feedback)
        try:
            return await self.llm.acomplete(system_prompt, user_prompt, temperature=self.revision_temperature)
        except LLMError as e:
            logger.error(f"Error refining prompt: {e}")
            raise GenerationFailure("revise_artifact", "Could not refine the prompt.") from e
