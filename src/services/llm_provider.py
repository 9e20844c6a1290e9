"""
LLM provider abstraction.

The enrichment service depends only on the LLMProvider protocol. Two concrete
providers exist: one for the Anthropic Messages API and one for the OpenAI
chat-completions API, which OpenRouter also serves.
"""
import logging
from typing import Protocol

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from core.config import Settings

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = 'https://openrouter.ai/api/v1'
OPENROUTER_APP_TITLE = 'TagLink - AI Link Management'


class LLMProvider(Protocol):
    """Single-turn text completion."""

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
        require_json: bool = False,
    ) -> str:
        """Return the model's reply, stripped. Raises on transport or API errors."""
        ...


class OpenAICompatibleProvider:
    """LLMProvider backed by an OpenAI-compatible chat-completions endpoint."""

    def __init__(self, client: AsyncOpenAI, model: str) -> None:
        self.client = client
        self.model = model

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
        require_json: bool = False,
    ) -> str:
        """Send one system + user message pair and return the first choice's text."""
        extra = {'response_format': {'type': 'json_object'}} if require_json else {}
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {'role': 'system', 'content': system_prompt},
                {'role': 'user', 'content': user_prompt},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
            **extra,
        )
        if not response.choices:
            return ''
        content = response.choices[0].message.content
        return (content or '').strip()


class AnthropicProvider:
    """
    LLMProvider backed by the Anthropic Messages API.

    The Messages API has no JSON response mode, so require_json is accepted
    and ignored; callers already ask for JSON in the prompt and parse
    defensively.
    """

    def __init__(self, client: AsyncAnthropic, model: str) -> None:
        self.client = client
        self.model = model

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
        require_json: bool = False,  # noqa: ARG002
    ) -> str:
        """Send the system prompt and one user message; return the first text block."""
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=[{'role': 'user', 'content': user_prompt}],
        )
        for block in response.content:
            if block.type == 'text':
                return block.text.strip()
        raise ValueError("Unexpected response format from Anthropic")


def build_llm_provider(settings: Settings) -> LLMProvider | None:
    """
    Build the configured provider, or None when no API key is set.

    Precedence when several keys are present: Anthropic, then OpenRouter, then OpenAI.
    """
    if settings.anthropic_api_key:
        client = AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )
        logger.info("Using Anthropic LLM provider (model=%s)", settings.anthropic_model)
        return AnthropicProvider(client, settings.anthropic_model)

    if settings.openrouter_api_key:
        client = AsyncOpenAI(
            api_key=settings.openrouter_api_key,
            base_url=OPENROUTER_BASE_URL,
            default_headers={
                'HTTP-Referer': settings.app_url,
                'X-Title': OPENROUTER_APP_TITLE,
            },
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )
        logger.info("Using OpenRouter LLM provider (model=%s)", settings.openrouter_model)
        return OpenAICompatibleProvider(client, settings.openrouter_model)

    if settings.openai_api_key:
        client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )
        logger.info("Using OpenAI LLM provider (model=%s)", settings.openai_model)
        return OpenAICompatibleProvider(client, settings.openai_model)

    logger.warning("No LLM API key configured; AI enrichment is disabled")
    return None
