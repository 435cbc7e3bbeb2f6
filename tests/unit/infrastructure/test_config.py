"""
Tests for settings loading and the message catalog.
"""
import pytest

from core.schemas import ConversationState
from infrastructure.config import (
    REQUIRED_MESSAGE_KEYS,
    CoachSettings,
    ConfigError,
    LLMSettings,
    MessageCatalog,
    get_message_catalog,
    get_settings,
    load_message_catalog,
    load_settings,
    load_toml_config,
    set_settings,
)


def complete_messages(**overrides):
    messages = {key: f"<{key}>" for key in REQUIRED_MESSAGE_KEYS}
    messages.update(overrides)
    return messages


class TestSettings:

    def test_shipped_settings(self):
        settings = load_settings()
        assert settings.llm.model == "gemini/gemini-2.5-flash"
        assert settings.llm.synthesis_temperature == 0.7
        assert settings.llm.revision_temperature == 0.6
        assert settings.conversation.language == "de"

    def test_missing_file_warns_and_uses_defaults(self, tmp_path):
        with pytest.warns(UserWarning, match="Failed to load config"):
            settings = load_settings(tmp_path / "missing.toml")
        assert settings == CoachSettings()

    def test_broken_toml_warns(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("[llm\nmodel = ")
        with pytest.warns(UserWarning):
            assert load_toml_config(path) == {}

    def test_partial_file_keeps_defaults(self, tmp_path):
        path = tmp_path / "partial.toml"
        path.write_text('[llm]\nmodel = "openai/gpt-4o-mini"\n')
        settings = load_settings(path)
        assert settings.llm.model == "openai/gpt-4o-mini"
        assert settings.llm.max_tokens == 8192

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("PROMPT_COACH_LLM_MODEL", "anthropic/claude-sonnet-4")
        monkeypatch.setenv("PROMPT_COACH_LLM_TEMPERATURE", "0.3")
        settings = load_settings()
        assert settings.llm.model == "anthropic/claude-sonnet-4"
        assert settings.llm.temperature == 0.3

    def test_config_path_from_environment(self, monkeypatch, tmp_path):
        path = tmp_path / "alt.toml"
        path.write_text('[conversation]\nlanguage = "en"\n')
        monkeypatch.setenv("PROMPT_COACH_CONFIG", str(path))
        assert load_settings().conversation.language == "en"

    def test_wrong_shape_raises_config_error(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text('[llm]\nmax_tokens = "viele"\n')
        with pytest.raises(ConfigError):
            load_settings(path)

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_set_settings(self):
        custom = CoachSettings(llm=LLMSettings(model="test/model"))
        set_settings(custom)
        assert get_settings().llm.model == "test/model"


class TestMessageCatalog:

    def test_shipped_german_catalog(self):
        catalog = load_message_catalog("de")
        assert catalog.affirmative_token == "ja"
        assert catalog.trailer_text.startswith("\n\n")
        assert "NeuroMedia24" in catalog.trailer_text

    def test_missing_keys_raise(self):
        messages = complete_messages()
        del messages["farewell"]
        with pytest.raises(ConfigError, match="farewell"):
            MessageCatalog("xx", messages)

    def test_unknown_language_raises(self):
        with pytest.raises(ConfigError, match="klingon"):
            load_message_catalog("klingon")

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigError):
            load_message_catalog("de", path=tmp_path / "nope.yaml")

    def test_custom_catalog_file(self, tmp_path):
        lines = ["en:"] + [f'  {key}: "{key}-en"' for key in REQUIRED_MESSAGE_KEYS]
        path = tmp_path / "messages.yaml"
        path.write_text("\n".join(lines) + "\n")
        catalog = load_message_catalog("en", path=path)
        assert catalog.get("farewell") == "farewell-en"

    def test_affirmative_token_is_normalized(self):
        catalog = MessageCatalog.from_dict("en", complete_messages(affirmative_token="  Yes "))
        assert catalog.affirmative_token == "yes"

    def test_input_hint(self):
        catalog = MessageCatalog.from_dict("en", complete_messages(input_hints={"done": "Finished."}))
        assert catalog.input_hint(ConversationState.DONE) == "Finished."
        assert catalog.input_hint(ConversationState.FEEDBACK) == ""

    def test_every_state_has_a_german_hint(self):
        catalog = load_message_catalog("de")
        for state in ConversationState:
            assert catalog.input_hint(state)

    def test_catalog_language_follows_settings(self):
        assert get_message_catalog().language == "de"
