"""
PROMPT COACH CORE - Central exports for core functionality.

This module provides access to:
- Data contracts (schemas)
- LLM interface (StructuredLLM)
- Session state (SessionStore)
"""

from core.schemas import (
    ClarifyingQuestion,
    ConversationState,
    Explanation,
    GeneratePrompt,
    NextQuestion,
    NextStepDecision,
    QnaPair,
    SessionSnapshot,
    Speaker,
    TranscriptEntry,
    validate_question,
)
from core.llm import (
    StructuredLLM,
    LLMError,
    ValidationError,
    get_llm,
    set_llm,
    reset_llm,
)
from core.session_store import SessionStore

__all__ = [
    # Schemas
    "ClarifyingQuestion",
    "ConversationState",
    "Explanation",
    "GeneratePrompt",
    "NextQuestion",
    "NextStepDecision",
    "QnaPair",
    "SessionSnapshot",
    "Speaker",
    "TranscriptEntry",
    "validate_question",
    # LLM
    "StructuredLLM",
    "LLMError",
    "ValidationError",
    "get_llm",
    "set_llm",
    "reset_llm",
    # Session
    "SessionStore",
]
