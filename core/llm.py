"""
PROMPT COACH - Structured LLM Interface

Provides a strictly typed, async interface for LLM generation.
Enforces msgspec schema compliance via JSON Mode + Validation.

Design:
- JSON Mode (Prompt) -> Output -> extract JSON block -> msgspec.decode
- Uses msgspec.json.schema() for ground-truth prompt generation.
- Agnostic to underlying provider (Gemini, OpenAI, Anthropic, etc.) via LiteLLM.
- Single request per call: no retry, no caching. Callers decide what a
  failure means.

Architecture:
    Collaborator
        |
        v
    StructuredLLM.agenerate(prompt, schema=T)
        |
        v
    [Inject JSON Schema into System Prompt]
        |
        v
    litellm.acompletion(response_format=json_object)
        |
        v
    [extract_json_block() - strip markdown fences]
        |
        v
    [msgspec.json.decode() - Strict Validation]
        |
        v
    Return T (or raise ValidationError)
"""
import re
import json
import time
import logging
import msgspec
from typing import Any, Optional, Type, TypeVar
import litellm

from infrastructure.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_JSON_BLOCK = re.compile(r"```json\s*\n([\s\S]*?)\n\s*```")


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LLMError(Exception):
    """Base exception for LLM failures."""
    pass


class ValidationError(LLMError):
    """Raised when LLM output does not match the required schema."""
    pass


# =============================================================================
# RESPONSE HELPERS
# =============================================================================

def extract_json_block(text: str) -> str:
    """
    Extract the JSON payload from a raw model response.

    Prefers a ```json fenced block anywhere in the text; otherwise strips
    a surrounding fence if present and returns the rest.
    """
    match = _JSON_BLOCK.search(text)
    if match:
        return match.group(1).strip()

    content = text.strip()
    if content.startswith("```json"):
        content = content[7:]
    elif content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def _schema_name(schema: Any) -> str:
    return getattr(schema, "__name__", None) or str(schema).replace("typing.", "")


# =============================================================================
# STRUCTURED LLM
# =============================================================================

class StructuredLLM:
    """
    A wrapper around LiteLLM that enforces structured outputs.

    1. Inject msgspec-generated JSON Schema into system prompt
    2. Use response_format=json_object where supported
    3. Validate response with msgspec.json.decode()

    Usage:
        llm = StructuredLLM(model="gemini/gemini-2.5-flash")

        class MyOutput(msgspec.Struct):
            name: str
            value: int

        result = await llm.agenerate(
            system_prompt="You are a data extractor.",
            user_prompt="Extract the name and value from: 'Widget costs 42'",
            schema=MyOutput,
        )
    """

    def __init__(
        self,
        model: str = "gemini/gemini-2.5-flash",
        temperature: float = 0.0,
        max_tokens: int = 8192,
    ):
        """
        Initialize the structured LLM.

        Args:
            model: LiteLLM model identifier (provider prefix required, e.g. "gemini/...")
            temperature: Default sampling temperature
            max_tokens: Maximum tokens in response
        """
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

        # Disable LiteLLM's verbose logging
        litellm.set_verbose = False

    def _get_schema_prompt(self, schema: Any) -> str:
        """Generate the JSON Schema (Draft 2020-12) for a msgspec type."""
        return json.dumps(msgspec.json.schema(schema), indent=2, ensure_ascii=False)

    def _build_system_prompt(self, base_prompt: str, schema: Any) -> str:
        """Build the full system prompt with schema injection."""
        schema_json = self._get_schema_prompt(schema)

        return f"""{base_prompt}

# OUTPUT CONTRACT
You ONLY output JSON.

Your output must strictly adhere to this JSON Schema:
```json
{schema_json}
```

CRITICAL RULES:
1. Output ONLY valid JSON - no markdown, no explanation, no preamble.
2. All required fields must be present.
3. If a field is a list, it must be a JSON array.
"""

    async def _acompletion(self, messages: list, temperature: float, json_mode: bool) -> str:
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        start_time = time.time()
        try:
            response = await litellm.acompletion(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=self.max_tokens,
                # Ignore unsupported params for provider flexibility
                drop_params=True,
                **kwargs,
            )
        except Exception as e:
            # API outage, network error, auth, rate limit...
            raise LLMError(f"LLM generation failed: {e}") from e

        duration_ms = (time.time() - start_time) * 1000
        usage = getattr(response, "usage", None)
        if usage:
            logger.debug(
                f"LLM call to {self.model} took {duration_ms:.0f}ms "
                f"(in={usage.prompt_tokens}, out={usage.completion_tokens})"
            )

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise LLMError(f"Malformed LLM response: {e}") from e
        return content or ""

    async def agenerate(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Type[T],
        temperature: Optional[float] = None,
        contract: Optional[Any] = None,
    ) -> T:
        """
        Generate a structured response matching the provided schema.

        Args:
            system_prompt: The base system prompt (role, context, instructions)
            user_prompt: The specific user request
            schema: A msgspec.Struct subclass (or tagged Union of Structs)
            contract: Type shown in the prompt's output contract, when the
                decode type is deliberately looser (defaults to schema)

        Returns:
            An instance of the schema type, populated from the LLM response

        Raises:
            ValidationError: If the response is not parseable or violates the schema
            LLMError: If the LLM API call fails
        """
        full_system_prompt = self._build_system_prompt(system_prompt, contract or schema)
        content = await self._acompletion(
            messages=[
                {"role": "system", "content": full_system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.temperature if temperature is None else temperature,
            json_mode=True,
        )

        payload = extract_json_block(content)
        try:
            return msgspec.json.decode(payload.encode("utf-8"), type=schema)
        except msgspec.ValidationError as e:
            raise ValidationError(f"Schema validation failed for {_schema_name(schema)}: {e}") from e
        except msgspec.DecodeError as e:
            logger.error(f"Failed to parse JSON from LLM response. Raw string: {payload!r}")
            raise ValidationError(f"JSON decode failed for {_schema_name(schema)}: {e}") from e

    async def acomplete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Generate free text.

        Returns:
            The stripped response text (may be empty)

        Raises:
            LLMError: If the LLM API call fails
        """
        content = await self._acompletion(
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.temperature if temperature is None else temperature,
            json_mode=False,
        )
        return content.strip()


# =============================================================================
# GLOBAL SINGLETON
# =============================================================================

_llm_instance: Optional[StructuredLLM] = None


def get_llm() -> StructuredLLM:
    """
    Get the global LLM instance.

    Configured from config/prompt_coach.toml, with environment overrides:
    - PROMPT_COACH_LLM_MODEL: Model identifier (default: gemini/gemini-2.5-flash)
    - PROMPT_COACH_LLM_TEMPERATURE: Temperature (default: 0.0)

    Note: LiteLLM requires provider prefix (gemini/, anthropic/, openai/, etc.)
    """
    global _llm_instance
    if _llm_instance is None:
        settings = get_settings().llm
        _llm_instance = StructuredLLM(
            model=settings.model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
        )
    return _llm_instance


def set_llm(llm: Optional[StructuredLLM]) -> None:
    """
    Set the global LLM instance.

    Useful for testing with mock LLMs or different configurations.
    """
    global _llm_instance
    _llm_instance = llm


def reset_llm() -> None:
    """Reset the global LLM instance (forces re-initialization on next get_llm())."""
    global _llm_instance
    _llm_instance = None
