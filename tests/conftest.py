"""
Pytest configuration and shared fixtures for the Prompt Coach test suite.
"""
import sys
from collections import defaultdict, deque
from pathlib import Path
from typing import Any, Dict, List

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from coach.collaborator import GenerationFailure, GenerativeCollaborator  # noqa: E402
from core.schemas import ClarifyingQuestion  # noqa: E402


class ScriptedCollaborator(GenerativeCollaborator):
    """
    Collaborator that replays scripted responses.

    Each operation pops the next queued item; an Exception instance is
    raised instead of returned. Every call is recorded in `calls`.
    """

    def __init__(self):
        self.responses: Dict[str, deque] = defaultdict(deque)
        self.calls: List[tuple] = []

    def script(self, operation: str, *items: Any) -> "ScriptedCollaborator":
        self.responses[operation].extend(items)
        return self

    def _next(self, operation: str, *args) -> Any:
        self.calls.append((operation, args))
        if not self.responses[operation]:
            raise GenerationFailure(operation, "no scripted response")
        item = self.responses[operation].popleft()
        if isinstance(item, Exception):
            raise item
        return item

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    async def propose_first_question(self, initial_request):
        return self._next("propose_first_question", initial_request)

    async def decide_next_step(self, transcript, last_question, last_answer):
        return self._next("decide_next_step", list(transcript), last_question, last_answer)

    async def synthesize_artifact(self, initial_request, qna_history):
        return self._next("synthesize_artifact", initial_request, list(qna_history))

    async def revise_artifact(self, current_artifact, feedback):
        return self._next("revise_artifact", current_artifact, feedback)


@pytest.fixture(autouse=True)
def reset_global_state():
    """Reset global singletons before each test to ensure isolation."""
    from core.llm import reset_llm
    from infrastructure.config import reset_config
    from infrastructure.event_bus import reset_event_bus

    reset_event_bus()
    reset_llm()
    reset_config()

    yield

    reset_event_bus()
    reset_llm()
    reset_config()


@pytest.fixture
def catalog():
    """The German message catalog shipped in config/messages.yaml."""
    from infrastructure.config import load_message_catalog
    return load_message_catalog(language="de")


@pytest.fixture
def bus():
    from infrastructure.event_bus import EventBus
    return EventBus()


@pytest.fixture
def store(bus):
    from core.session_store import SessionStore
    return SessionStore(bus=bus)


@pytest.fixture
def collaborator():
    return ScriptedCollaborator()


@pytest.fixture
def machine(store, collaborator, catalog):
    from coach.conversation import ConversationMachine
    return ConversationMachine(store, collaborator, catalog)


@pytest.fixture
def driver(collaborator, catalog, bus):
    from coach.driver import CoachDriver
    return CoachDriver(collaborator, catalog=catalog, bus=bus)


@pytest.fixture
def first_question():
    return ClarifyingQuestion(
        question="Für wen sind die Texte gedacht?",
        options=["Kunden", "Mitarbeiter", "Investoren"],
    )
