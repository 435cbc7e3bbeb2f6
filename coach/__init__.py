# Coach layer - collaborator, turn classifier, state machine and driver

from coach.collaborator import GenerationFailure, GenerativeCollaborator, LLMCollaborator
from coach.turn_classifier import TurnClassifier
from coach.conversation import ConversationMachine, TurnResult, is_affirmative
from coach.driver import CoachDriver

__all__ = [
    "GenerationFailure",
    "GenerativeCollaborator",
    "LLMCollaborator",
    "TurnClassifier",
    "ConversationMachine",
    "TurnResult",
    "is_affirmative",
    "CoachDriver",
]
