"""
Tests for the structured LLM wrapper.

litellm.acompletion is patched; no network calls are made.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from core.llm import (
    LLMError,
    StructuredLLM,
    ValidationError,
    extract_json_block,
    get_llm,
    set_llm,
)
from core.schemas import ClarifyingQuestion, GeneratePrompt, NextStepDecision, QuestionDraft


def fake_response(content):
    response = MagicMock()
    response.choices[0].message.content = content
    response.usage.prompt_tokens = 10
    response.usage.completion_tokens = 5
    return response


class TestExtractJsonBlock:

    def test_plain_json_passes_through(self):
        assert extract_json_block('  {"a": 1}  ') == '{"a": 1}'

    def test_fenced_block_inside_text(self):
        text = 'Hier ist die Antwort:\n```json\n{"type": "generate_prompt"}\n```\nViel Spaß!'
        assert extract_json_block(text) == '{"type": "generate_prompt"}'

    def test_bare_fence_is_stripped(self):
        assert extract_json_block('```\n{"a": 1}\n```') == '{"a": 1}'


class TestAgenerate:

    @pytest.mark.asyncio
    async def test_decodes_schema(self):
        llm = StructuredLLM(model="test/model")
        content = '```json\n{"question": "Wer?", "options": ["A", "B"]}\n```'
        with patch("core.llm.litellm.acompletion", new=AsyncMock(return_value=fake_response(content))) as mock_call:
            result = await llm.agenerate("system", "user", schema=ClarifyingQuestion)

        assert result == ClarifyingQuestion(question="Wer?", options=["A", "B"])
        kwargs = mock_call.call_args.kwargs
        assert kwargs["model"] == "test/model"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "OUTPUT CONTRACT" in kwargs["messages"][0]["content"]
        assert kwargs["messages"][1] == {"role": "user", "content": "user"}

    @pytest.mark.asyncio
    async def test_decodes_tagged_union(self):
        llm = StructuredLLM(model="test/model")
        with patch("core.llm.litellm.acompletion", new=AsyncMock(return_value=fake_response('{"type": "generate_prompt"}'))):
            result = await llm.agenerate("system", "user", schema=NextStepDecision)
        assert result == GeneratePrompt()

    @pytest.mark.asyncio
    async def test_contract_overrides_advertised_schema(self):
        llm = StructuredLLM(model="test/model")
        content = '{"question": "Wer?", "options": ["A", 1]}'
        with patch("core.llm.litellm.acompletion", new=AsyncMock(return_value=fake_response(content))) as mock_call:
            result = await llm.agenerate("system", "user", schema=QuestionDraft, contract=ClarifyingQuestion)

        assert result == QuestionDraft(question="Wer?", options=["A", 1])
        system_prompt = mock_call.call_args.kwargs["messages"][0]["content"]
        assert '"ClarifyingQuestion"' in system_prompt
        assert '"QuestionDraft"' not in system_prompt

    @pytest.mark.asyncio
    async def test_unparseable_response_raises_validation_error(self):
        llm = StructuredLLM(model="test/model")
        with patch("core.llm.litellm.acompletion", new=AsyncMock(return_value=fake_response("kein JSON"))):
            with pytest.raises(ValidationError):
                await llm.agenerate("system", "user", schema=ClarifyingQuestion)

    @pytest.mark.asyncio
    async def test_schema_mismatch_raises_validation_error(self):
        llm = StructuredLLM(model="test/model")
        with patch("core.llm.litellm.acompletion", new=AsyncMock(return_value=fake_response('{"question": 3}'))):
            with pytest.raises(ValidationError):
                await llm.agenerate("system", "user", schema=ClarifyingQuestion)

    @pytest.mark.asyncio
    async def test_provider_error_raises_llm_error(self):
        llm = StructuredLLM(model="test/model")
        with patch("core.llm.litellm.acompletion", new=AsyncMock(side_effect=RuntimeError("503"))):
            with pytest.raises(LLMError) as exc_info:
                await llm.agenerate("system", "user", schema=ClarifyingQuestion)
        assert not isinstance(exc_info.value, ValidationError)

    @pytest.mark.asyncio
    async def test_is_called_once_without_retry(self):
        llm = StructuredLLM(model="test/model")
        mock_call = AsyncMock(return_value=fake_response("kaputt"))
        with patch("core.llm.litellm.acompletion", new=mock_call):
            with pytest.raises(ValidationError):
                await llm.agenerate("system", "user", schema=ClarifyingQuestion)
        assert mock_call.await_count == 1


class TestAcomplete:

    @pytest.mark.asyncio
    async def test_returns_stripped_text(self):
        llm = StructuredLLM(model="test/model")
        with patch("core.llm.litellm.acompletion", new=AsyncMock(return_value=fake_response("  # Rolle\n...  "))) as mock_call:
            result = await llm.acomplete("system", "user", temperature=0.7)
        assert result == "# Rolle\n..."
        assert mock_call.call_args.kwargs["temperature"] == 0.7
        assert "response_format" not in mock_call.call_args.kwargs

    @pytest.mark.asyncio
    async def test_empty_content_is_empty_string(self):
        llm = StructuredLLM(model="test/model")
        with patch("core.llm.litellm.acompletion", new=AsyncMock(return_value=fake_response(None))):
            assert await llm.acomplete("system", "user") == ""


class TestSingleton:

    def test_get_llm_uses_environment_model(self, monkeypatch):
        monkeypatch.setenv("PROMPT_COACH_LLM_MODEL", "openai/gpt-4o")
        assert get_llm().model == "openai/gpt-4o"
        assert get_llm() is get_llm()

    def test_set_llm_overrides(self):
        custom = StructuredLLM(model="test/model")
        set_llm(custom)
        assert get_llm() is custom
