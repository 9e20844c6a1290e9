"""
AI enrichment: link descriptions and tag suggestions.

Three independent steps, each reporting failure as data rather than raising:
- generate_description: a short description of the page.
- suggest_tags: pick ids from the user's existing tags.
- generate_new_tags: propose new tag names when nothing existing fits.
"""
import asyncio
import json
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from schemas.validators import is_valid_generated_tag
from services.llm_provider import LLMProvider

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 280
MAX_CONTEXT_CONTENT_CHARS = 1000
MAX_SUGGESTED_TAGS = 5
MIN_GENERATED_TAGS = 3
MAX_GENERATED_TAGS = 5

NOT_CONFIGURED_ERROR = "AI service not configured"
INVALID_JSON_ERROR = "Invalid JSON response from AI"

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")

DESCRIPTION_SYSTEM_PROMPT = """You are a helpful assistant that creates concise, informative descriptions for web links.
Your task is to generate a description that:
- Is EXACTLY 2-3 sentences
- Is MAXIMUM 280 characters (including spaces)
- Captures the essence and value of the content
- Is clear and easy to understand
- Does NOT include the URL or title verbatim

CRITICAL: The description MUST be 280 characters or less. Count carefully."""

SUGGEST_TAGS_SYSTEM_PROMPT = """You are an expert content analyst that suggests relevant tags for web content.
Your task:
- Carefully analyze the webpage content, title, and URL
- Select tags that are relevant to the topics discussed
- Return 3-5 relevant tags when possible
- Cover different aspects: main technology, topic category, content type, related concepts
- DO NOT create new tags, ONLY use provided tag IDs
- Return an empty list if none of the provided tags fit the content

Output format: {"tag_ids": ["id1", "id2", "id3"]}

CRITICAL: Return valid JSON only."""

NEW_TAGS_SYSTEM_PROMPT = """You are an expert content analyst that generates highly relevant tags for web content.
Your task:
- Carefully analyze the webpage content, title, and URL
- Generate MINIMUM 3 tags, MAXIMUM 5 tags that capture the important aspects
- Each tag must be 1-2 words maximum
- Tags must be in English, lowercase, simple keywords
- Tags should cover different aspects: technology, topic, purpose, category
- Tags should be generic and widely applicable (e.g., "javascript", "web development", "machine learning")
- DO NOT use special characters, only letters, numbers, spaces, hyphens

Examples of BAD tags:
- "how to build a website" (too long)
- "JavaScript Framework Tutorial" (not lowercase, too specific)
- "react.js/next.js" (special characters)

Output format: {"tags": ["tag1", "tag2", "tag3"]}

CRITICAL: Return valid JSON with MINIMUM 3, MAXIMUM 5 tags."""


@dataclass
class PageContent:
    """Page data used as LLM context."""

    url: str
    title: str | None = None
    description: str | None = None
    scraped_content: str | None = None

    def to_context(self) -> str:
        """Build the prompt context; scraped content is cut to the first 1000 chars."""
        parts = []
        if self.title:
            parts.append(f"Title: {self.title}")
        if self.description:
            parts.append(f"Meta: {self.description}")
        if self.scraped_content:
            parts.append(f"Content: {self.scraped_content[:MAX_CONTEXT_CONTENT_CHARS]}")
        return '\n'.join(parts)


@dataclass(frozen=True)
class TagChoice:
    """An existing user tag offered to the model."""

    id: str
    name: str


@dataclass
class DescriptionResult:
    """Result of generate_description."""

    success: bool
    description: str | None = None
    error: str | None = None


@dataclass
class TagSuggestionResult:
    """Result of suggest_tags. An empty tag_ids list with success=True is valid."""

    success: bool
    tag_ids: list[str] = field(default_factory=list)
    needs_new_tags: bool = False
    error: str | None = None


@dataclass
class NewTagsResult:
    """Result of generate_new_tags."""

    success: bool
    tag_names: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass
class EnrichmentResult:
    """Combined result of the concurrent description and tag suggestion steps."""

    description: DescriptionResult
    tags: TagSuggestionResult


def strip_code_fence(text: str) -> str:
    """Return the body of a ``` / ```json fenced block if present, else the trimmed text."""
    stripped = text.strip()
    match = CODE_FENCE_PATTERN.search(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def parse_json_object(text: str) -> dict:
    """
    Parse a model reply as a JSON object, tolerating code fences.

    Raises:
        ValueError: If the reply is not valid JSON or not a JSON object.
    """
    parsed = json.loads(strip_code_fence(text))
    if not isinstance(parsed, dict):
        raise ValueError("Expected a JSON object")
    return parsed


def truncate_description(description: str, max_length: int = MAX_DESCRIPTION_LENGTH) -> str:
    """Hard-truncate an overlong description to max_length, ending with '...'."""
    if len(description) <= max_length:
        return description
    return description[:max_length - 3] + '...'


class AIService:
    """
    Enrichment steps on top of an LLMProvider.

    With no provider configured every step returns success=False without
    making a call.
    """

    def __init__(self, provider: LLMProvider | None) -> None:
        self.provider = provider

    @property
    def enabled(self) -> bool:
        """Whether a provider is configured."""
        return self.provider is not None

    async def generate_description(self, content: PageContent) -> DescriptionResult:
        """
        Generate a 2-3 sentence description of at most 280 characters.

        Empty model output is an error. Overlong output is truncated.
        """
        if not self.enabled:
            return DescriptionResult(success=False, error=NOT_CONFIGURED_ERROR)

        context = content.to_context()
        if not context.strip():
            return DescriptionResult(
                success=False, error="No content available for description generation",
            )

        try:
            reply = await self.provider.complete(
                system_prompt=DESCRIPTION_SYSTEM_PROMPT,
                user_prompt=(
                    "Create a concise description (max 280 chars) for this webpage:"
                    f"\n\n{context}\n\nURL: {content.url}"
                ),
                max_tokens=150,
                temperature=0.7,
            )
        except Exception as e:
            logger.warning("AI description generation failed for %s: %s", content.url, e)
            return DescriptionResult(success=False, error=f"AI error: {e}")

        description = reply.strip()
        if not description:
            return DescriptionResult(success=False, error="AI returned empty description")
        return DescriptionResult(success=True, description=truncate_description(description))

    async def suggest_tags(
        self,
        content: PageContent,
        user_tags: Sequence[TagChoice],
    ) -> TagSuggestionResult:
        """
        Choose up to 5 of the user's existing tags.

        Ids the model returns that are not in user_tags are discarded. Zero
        matches is a success with needs_new_tags=True.

        Args:
            content: Page context.
            user_tags: The user's tags; at least one is required.
        """
        if not self.enabled:
            return TagSuggestionResult(success=False, error=NOT_CONFIGURED_ERROR)
        if not user_tags:
            return TagSuggestionResult(
                success=False, error="No tags available for suggestions",
            )

        context = content.to_context()
        if not context.strip():
            return TagSuggestionResult(
                success=False, error="No content available for tag suggestions",
            )

        tag_list = '\n'.join(f"{tag.id}: {tag.name}" for tag in user_tags)
        try:
            reply = await self.provider.complete(
                system_prompt=SUGGEST_TAGS_SYSTEM_PROMPT,
                user_prompt=(
                    "Analyze this webpage and suggest 3-5 RELEVANT tags from my existing tags.\n"
                    "Cover different aspects: main topic, technology, category, purpose.\n\n"
                    f"Webpage content:\n{context}\n\nURL: {content.url}\n\n"
                    f"Available tags (ID: name):\n{tag_list}\n\n"
                    "Return JSON with a tag_ids array of the matching tag IDs."
                ),
                max_tokens=200,
                temperature=0.3,
                require_json=True,
            )
        except Exception as e:
            logger.warning("AI tag suggestion failed for %s: %s", content.url, e)
            return TagSuggestionResult(success=False, error=f"AI error: {e}")

        if not reply:
            return TagSuggestionResult(success=False, error="AI returned empty response")

        try:
            suggested = parse_json_object(reply).get('tag_ids') or []
        except ValueError:
            logger.warning("Failed to parse AI tag suggestion response: %s", reply)
            return TagSuggestionResult(success=False, error=INVALID_JSON_ERROR)
        if not isinstance(suggested, list):
            return TagSuggestionResult(success=False, error=INVALID_JSON_ERROR)

        known_ids = {tag.id for tag in user_tags}
        tag_ids: list[str] = []
        for tag_id in suggested:
            if isinstance(tag_id, str) and tag_id in known_ids and tag_id not in tag_ids:
                tag_ids.append(tag_id)
        tag_ids = tag_ids[:MAX_SUGGESTED_TAGS]

        return TagSuggestionResult(
            success=True,
            tag_ids=tag_ids,
            needs_new_tags=not tag_ids and bool(user_tags),
        )

    async def generate_new_tags(self, content: PageContent) -> NewTagsResult:
        """
        Propose 3-5 new tag names for content that fits no existing tag.

        Names are lowercased and trimmed; names with more than 2 words, invalid
        characters, or outside 2-30 chars are dropped. Fewer than 3 survivors
        fails the step.
        """
        if not self.enabled:
            return NewTagsResult(success=False, error=NOT_CONFIGURED_ERROR)

        context = content.to_context()
        if not context.strip():
            return NewTagsResult(success=False, error="No content available for tag generation")

        try:
            reply = await self.provider.complete(
                system_prompt=NEW_TAGS_SYSTEM_PROMPT,
                user_prompt=(
                    "Analyze this webpage and generate MINIMUM 3, MAXIMUM 5 highly relevant "
                    "tags (1-2 words each, lowercase, English).\n"
                    "Think about: main technology, topic category, content type, purpose, "
                    "and key concepts.\n\n"
                    f"Webpage content:\n{context}\n\nURL: {content.url}\n\n"
                    "Return JSON with 3-5 tags."
                ),
                max_tokens=150,
                temperature=0.3,
                require_json=True,
            )
        except Exception as e:
            logger.warning("AI tag generation failed for %s: %s", content.url, e)
            return NewTagsResult(success=False, error=f"AI error: {e}")

        if not reply:
            return NewTagsResult(success=False, error="AI returned empty response")

        try:
            suggested = parse_json_object(reply).get('tags') or []
        except ValueError:
            logger.warning("Failed to parse AI new tags response: %s", reply)
            return NewTagsResult(success=False, error=INVALID_JSON_ERROR)
        if not isinstance(suggested, list):
            return NewTagsResult(success=False, error=INVALID_JSON_ERROR)

        tag_names: list[str] = []
        for name in suggested:
            if not isinstance(name, str):
                continue
            normalized = name.lower().strip()
            if is_valid_generated_tag(normalized) and normalized not in tag_names:
                tag_names.append(normalized)
        tag_names = tag_names[:MAX_GENERATED_TAGS]

        if len(tag_names) < MIN_GENERATED_TAGS:
            return NewTagsResult(
                success=False,
                error=f"AI generated too few tags (minimum {MIN_GENERATED_TAGS} required)",
            )
        return NewTagsResult(success=True, tag_names=tag_names)

    async def generate_description_and_tags(
        self,
        content: PageContent,
        user_tags: Sequence[TagChoice],
    ) -> EnrichmentResult:
        """Run generate_description and suggest_tags concurrently."""
        description, tags = await asyncio.gather(
            self.generate_description(content),
            self.suggest_tags(content, user_tags),
        )
        return EnrichmentResult(description=description, tags=tags)
