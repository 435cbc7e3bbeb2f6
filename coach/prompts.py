"""
PROMPT COACH - Prompt Builders

Turns session data into (system_prompt, user_prompt) pairs for the
generative collaborator. Templates live in config/prompts.yaml.
"""
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from core.schemas import QnaPair, TranscriptEntry


# =============================================================================
# CONFIG LOADER
# =============================================================================

PROMPTS_PATH = Path(__file__).parent.parent / "config" / "prompts.yaml"

_prompt_config: Optional[Dict[str, Any]] = None


def get_prompt_config() -> Dict[str, Any]:
    """Load prompt templates from prompts.yaml."""
    global _prompt_config
    if _prompt_config is None:
        with open(PROMPTS_PATH, "r", encoding="utf-8") as f:
            _prompt_config = yaml.safe_load(f)
    return _prompt_config


def get_template(operation: str) -> Dict[str, Any]:
    """Get the template block for a collaborator operation."""
    config = get_prompt_config()
    if operation not in config:
        raise ValueError(f"Unknown prompt template: {operation}")
    return config[operation]


# =============================================================================
# FORMATTERS
# =============================================================================

def format_transcript(entries: Sequence[TranscriptEntry], labels: Optional[Dict[str, str]] = None) -> str:
    """Render the transcript as 'Label: text' lines."""
    labels = labels or get_template("next_step").get("speaker_labels", {})
    lines = []
    for entry in entries:
        label = labels.get(entry.speaker.value, entry.speaker.value)
        lines.append(f"{label}: {entry.text}")
    return "\n".join(lines)


def format_qna_history(history: Sequence[QnaPair]) -> str:
    """Render Q&A pairs as blocks separated by blank lines."""
    qna_format = get_template("synthesize")["qna_format"]
    return "\n\n".join(
        qna_format.format(question=pair.question, answer=pair.answer)
        for pair in history
    )


# =============================================================================
# BUILDERS
# =============================================================================

def build_first_question_prompt(initial_request: str) -> Tuple[str, str]:
    template = get_template("first_question")
    return (
        template["system_prompt"],
        template["user_prompt"].format(initial_request=initial_request),
    )


def build_next_step_prompt(
    transcript: List[TranscriptEntry],
    last_question: str,
    last_answer: str,
) -> Tuple[str, str]:
    template = get_template("next_step")
    return (
        template["system_prompt"],
        template["user_prompt"].format(
            transcript=format_transcript(transcript, template.get("speaker_labels")),
            last_question=last_question,
            last_answer=last_answer,
        ),
    )


def build_synthesis_prompt(initial_request: str, history: Sequence[QnaPair]) -> Tuple[str, str]:
    template = get_template("synthesize")
    return (
        template["system_prompt"],
        template["user_prompt"].format(
            initial_request=initial_request,
            qna_history=format_qna_history(history),
        ),
    )


def build_revision_prompt(current_artifact: str, feedback: str) -> Tuple[str, str]:
    template = get_template("revise")
    return (
        template["system_prompt"],
        template["user_prompt"].format(
            current_artifact=current_artifact,
            feedback=feedback,
        ),
    )
