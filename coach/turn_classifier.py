"""
PROMPT COACH - Turn Classifier

Wraps GenerativeCollaborator.decide_next_step and validates the
decision before the state machine acts on it.

Validation policy:
- Explanation whose text is missing, blank or not a string: replaced by
  the catalog's apology; the turn is still a no-op explanation.
- NextQuestion whose question is not an object with a non-blank question
  string and an options list: downgraded to GeneratePrompt. This is a
  fallback, not an error, and there is no retry.
- GeneratePrompt: passed through.

GenerationFailure from the collaborator propagates unchanged.
"""
import logging
from typing import List

from core.schemas import (
    Explanation,
    GeneratePrompt,
    NextQuestion,
    NextStepDecision,
    QuestionDraft,
    TranscriptEntry,
    validate_question,
)
from coach.collaborator import GenerativeCollaborator
from infrastructure.config import MessageCatalog

logger = logging.getLogger(__name__)


class TurnClassifier:
    """
    Validating adapter around the collaborator's decide-next-step call.

    A NextQuestion returned from classify() always carries a draft that
    validate_question() accepts. last_was_fallback tells whether the most
    recent GeneratePrompt was a downgrade.

    Usage:
        classifier = TurnClassifier(collaborator, catalog)
        decision = await classifier.classify(transcript, question, answer)
    """

    def __init__(self, collaborator: GenerativeCollaborator, catalog: MessageCatalog):
        self.collaborator = collaborator
        self.catalog = catalog
        self.fallback_count = 0
        self.last_was_fallback = False

    async def classify(
        self,
        transcript: List[TranscriptEntry],
        last_question: str,
        last_answer: str,
    ) -> NextStepDecision:
        """
        Ask the collaborator for the next step and validate it.

        Raises:
            GenerationFailure: If the collaborator call fails
        """
        self.last_was_fallback = False
        decision = await self.collaborator.decide_next_step(transcript, last_question, last_answer)

        if isinstance(decision, Explanation):
            if isinstance(decision.text, str) and decision.text.strip():
                return decision
            logger.error(f"Received explanation without text: {decision!r}")
            return Explanation(text=self.catalog.get("explanation_missing"))

        if isinstance(decision, NextQuestion):
            question = validate_question(decision.question)
            if question is not None:
                return NextQuestion(
                    question=QuestionDraft(question=question.question, options=question.options)
                )
            self.fallback_count += 1
            self.last_was_fallback = True
            logger.warning(
                "Received 'next_question' without a valid question object. "
                f"Proceeding to generate prompt: {decision!r}"
            )
            return GeneratePrompt()

        if isinstance(decision, GeneratePrompt):
            return decision

        raise TypeError(f"Unhandled decision type: {type(decision).__name__}")
