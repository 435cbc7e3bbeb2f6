"""
PROMPT COACH CONFIG - Settings and Message Catalog

Two kinds of configuration are loaded from config/:
- prompt_coach.toml: runtime settings (LLM model, temperatures, language)
- messages.yaml: every user-visible string, keyed by language and purpose

Settings can be overridden via environment variables:
- PROMPT_COACH_CONFIG: Alternate path to the TOML settings file
- PROMPT_COACH_LLM_MODEL: LiteLLM model identifier
- PROMPT_COACH_LLM_TEMPERATURE: Sampling temperature for structured calls
- PROMPT_COACH_MESSAGES: Alternate path to the message catalog

Usage:
    from infrastructure.config import get_settings, get_message_catalog

    settings = get_settings()
    catalog = get_message_catalog()
    catalog.get("farewell")
"""
import os
import tomllib
import warnings
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import msgspec
import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).parent.parent / "config"
DEFAULT_SETTINGS_PATH = CONFIG_DIR / "prompt_coach.toml"
DEFAULT_MESSAGES_PATH = CONFIG_DIR / "messages.yaml"


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or is incomplete."""
    pass


# =============================================================================
# SETTINGS
# =============================================================================

class LLMSettings(msgspec.Struct, kw_only=True):
    """Generative service settings."""
    model: str = "gemini/gemini-2.5-flash"
    temperature: float = 0.0
    synthesis_temperature: float = 0.7
    revision_temperature: float = 0.6
    max_tokens: int = 8192


class ConversationSettings(msgspec.Struct, kw_only=True):
    """Dialogue settings."""
    language: str = "de"


class CoachSettings(msgspec.Struct, kw_only=True):
    """Top-level settings object."""
    llm: LLMSettings = msgspec.field(default_factory=LLMSettings)
    conversation: ConversationSettings = msgspec.field(default_factory=ConversationSettings)


def load_toml_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load raw settings from the TOML file.

    A missing or unreadable file yields an empty dict (defaults apply).
    """
    config_path = path or Path(os.getenv("PROMPT_COACH_CONFIG", str(DEFAULT_SETTINGS_PATH)))
    try:
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        warnings.warn(f"Failed to load config from TOML: {e}")
        return {}


def load_settings(path: Optional[Path] = None) -> CoachSettings:
    """
    Build CoachSettings from TOML plus environment overrides.

    Raises:
        ConfigError: If the TOML content has the wrong shape
    """
    raw = load_toml_config(path)

    llm_section = dict(raw.get("llm", {}))
    if os.getenv("PROMPT_COACH_LLM_MODEL"):
        llm_section["model"] = os.environ["PROMPT_COACH_LLM_MODEL"]
    if os.getenv("PROMPT_COACH_LLM_TEMPERATURE"):
        llm_section["temperature"] = float(os.environ["PROMPT_COACH_LLM_TEMPERATURE"])
    raw["llm"] = llm_section

    try:
        return msgspec.convert(raw, type=CoachSettings)
    except msgspec.ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e


_settings: Optional[CoachSettings] = None


def get_settings() -> CoachSettings:
    """Get the process-wide settings (loaded lazily)."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def set_settings(settings: Optional[CoachSettings]) -> None:
    """Replace the process-wide settings. Useful for testing."""
    global _settings
    _settings = settings


# =============================================================================
# MESSAGE CATALOG
# =============================================================================

REQUIRED_MESSAGE_KEYS = (
    "affirmative_token",
    "trailer_text",
    "first_question_failed",
    "turn_failed",
    "refine_failed",
    "explanation_missing",
    "generating_notice",
    "generating_fallback_notice",
    "feedback_question",
    "missing_details_question",
    "refining_notice",
    "refined_feedback_question",
    "trailer_question",
    "trailer_applied",
    "closing_success",
    "restart_question",
    "farewell",
)


class MessageCatalog:
    """
    Lookup table of user-visible strings for one language.

    The state machine refers to messages only by purpose key, so the
    conversation language is a configuration concern.
    """

    def __init__(self, language: str, messages: Dict[str, Any]):
        missing = [key for key in REQUIRED_MESSAGE_KEYS if not isinstance(messages.get(key), str)]
        if missing:
            raise ConfigError(f"Message catalog '{language}' is missing keys: {', '.join(missing)}")
        self.language = language
        self._messages = messages

    def get(self, key: str) -> str:
        """Return the message for a purpose key (KeyError if unknown)."""
        value = self._messages[key]
        if not isinstance(value, str):
            raise KeyError(key)
        return value

    @property
    def affirmative_token(self) -> str:
        return self._messages["affirmative_token"].strip().lower()

    @property
    def trailer_text(self) -> str:
        return self._messages["trailer_text"]

    def input_hint(self, state) -> str:
        """Placeholder text for the free-text input in a given ConversationState."""
        hints = self._messages.get("input_hints") or {}
        return hints.get(getattr(state, "value", state), "")

    @classmethod
    def from_dict(cls, language: str, messages: Dict[str, Any]) -> "MessageCatalog":
        return cls(language, dict(messages))


def load_message_catalog(language: Optional[str] = None, path: Optional[Path] = None) -> MessageCatalog:
    """
    Load the message catalog for a language from YAML.

    Args:
        language: Language key (defaults to settings.conversation.language)
        path: Optional catalog path (defaults to PROMPT_COACH_MESSAGES or config/messages.yaml)

    Raises:
        ConfigError: If the file is missing, the language is absent or keys are missing
    """
    language = language or get_settings().conversation.language
    catalog_path = path or Path(os.getenv("PROMPT_COACH_MESSAGES", str(DEFAULT_MESSAGES_PATH)))

    try:
        with open(catalog_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load message catalog from {catalog_path}: {e}") from e

    if language not in data:
        raise ConfigError(f"Language '{language}' not found in {catalog_path}")

    logger.debug(f"Loaded message catalog '{language}' from {catalog_path}")
    return MessageCatalog(language, data[language])


_catalog: Optional[MessageCatalog] = None


def get_message_catalog() -> MessageCatalog:
    """Get the process-wide message catalog (loaded lazily)."""
    global _catalog
    if _catalog is None:
        _catalog = load_message_catalog()
    return _catalog


def reset_config() -> None:
    """Forget cached settings and catalog (forces reload)."""
    global _settings, _catalog
    _settings = None
    _catalog = None
