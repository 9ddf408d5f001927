"""
Language-model SQL generation over the OpenAI and Anthropic APIs.

The provider is untrusted: every response is parsed defensively and
validated into an ``AIQueryResult``. Failures of any kind are logged
and reported as ``None`` so the caller can fall back to pattern
matching.
"""

import json
import logging
import re
from typing import Any

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI
from pydantic import ValidationError

from models import AIQueryResult, GeneratedQuery, GenerationSource, MatchedPattern, RuleSet

logger = logging.getLogger(__name__)

AI_INTENT = "ai_generated"

_FENCE_RE = re.compile(r"```(?:json|sql)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[^{}]*\}", re.DOTALL)

SYSTEM_PROMPT = """You translate questions into MySQL SELECT statements.

Database schema:
{schema}

Known query patterns:
{patterns}

Rules:
- Produce exactly one read-only SELECT statement. Never modify data.
- Use only the tables and columns listed above.
- Do not use comments, UNION, or system schemas.
- Include a LIMIT clause unless the question asks for an aggregate.

Respond with a JSON object:
{{"sql": "<statement>", "confidence": <0.0-1.0>, "reasoning": "<one sentence>", "tables_used": ["<table>"]}}"""


def render_schema(rule_set: RuleSet) -> str:
    """Describe the schema one table per line."""
    lines = []
    for name, info in rule_set.tables.items():
        columns = ", ".join(info.columns)
        description = f" -- {info.description}" if info.description else ""
        lines.append(f"- {name}({columns}){description}")
    return "\n".join(lines) or "- (no tables described)"


def _render_patterns(rule_set: RuleSet) -> str:
    return "\n".join(
        f"- {p.intent}: {p.description or p.template}" for p in rule_set.query_patterns
    )


def parse_ai_response(response_text: str) -> dict[str, Any] | None:
    """Parse the model's JSON response.

    Attempts direct JSON parsing, then markdown code-fence extraction,
    then the outermost braces, and finally a regex search for an embedded
    flat JSON object. Raw control characters inside strings are accepted.

    Args:
        response_text: The raw text response from the model.

    Returns:
        Parsed dictionary, or ``None`` if nothing parsed to an object.
    """
    text = (response_text or "").strip()
    if not text:
        return None

    attempts = [text]
    fence = _FENCE_RE.search(text)
    if fence:
        attempts.append(fence.group(1).strip())
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        attempts.append(text[start : end + 1])
    match = _OBJECT_RE.search(text)
    if match:
        attempts.append(match.group())

    for attempt in attempts:
        try:
            parsed = json.loads(attempt, strict=False)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


class LanguageModelQueryGenerator:
    """
    Shared request, parse and validate flow for language-model generators.

    Subclasses implement ``_complete`` for one provider API. A generator
    built without a client is disabled and always returns ``None``.
    """

    source = GenerationSource.AI
    provider = "unknown"

    def __init__(self, client: Any, model: str, temperature: float, max_tokens: int) -> None:  # noqa: ANN401
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def _complete(self, system: str, prompt: str) -> str | None:
        raise NotImplementedError

    async def _ping(self) -> None:
        raise NotImplementedError

    async def request_sql(self, prompt: str, rule_set: RuleSet) -> AIQueryResult | None:
        """
        Ask the model for SQL and validate its answer.

        Args:
            prompt: Natural-language request.
            rule_set: Schema and patterns rendered into the system prompt.

        Returns:
            The validated result, or ``None`` on any failure.
        """
        if self._client is None:
            return None

        system = SYSTEM_PROMPT.format(
            schema=render_schema(rule_set), patterns=_render_patterns(rule_set)
        )
        try:
            content = await self._complete(system, prompt)
        except Exception:
            logger.exception("%s request failed", self.provider)
            return None

        parsed = parse_ai_response(content or "")
        if parsed is None:
            logger.warning("Unparseable AI response: %s", (content or "")[:200])
            return None

        try:
            result = AIQueryResult.model_validate(parsed)
        except ValidationError as exc:
            logger.warning("AI response failed validation: %s", exc.errors()[:3])
            return None

        logger.info(
            "AI generated SQL (provider=%s, confidence=%.2f): %s",
            self.provider,
            result.confidence,
            result.sql[:200],
        )
        return result

    async def generate(self, prompt: str, rule_set: RuleSet) -> GeneratedQuery | None:
        result = await self.request_sql(prompt, rule_set)
        if result is None:
            return None
        return GeneratedQuery(
            sql=result.sql,
            confidence=result.confidence,
            source=self.source,
            matched_pattern=MatchedPattern(
                intent=AI_INTENT, description="Generated by the language model"
            ),
            reasoning=result.reasoning or None,
            tables_used=result.tables_used,
            ai_enabled=True,
        )

    async def test_connection(self) -> bool:
        """Send a trivial request to check the key and model."""
        if self._client is None:
            return False
        try:
            await self._ping()
        except Exception:
            logger.exception("%s connection test failed", self.provider)
            return False
        return True

    async def close(self) -> None:
        if self._client is not None and hasattr(self._client, "close"):
            await self._client.close()


class OpenAIQueryGenerator(LanguageModelQueryGenerator):
    """
    ``QueryGenerator`` backed by an OpenAI chat model.

    Args:
        api_key: API key; without it the generator is disabled.
        model: Chat model name.
        temperature: Sampling temperature.
        max_tokens: Completion token limit.
        timeout: Request timeout in seconds.
        base_url: Alternative API endpoint (OpenAI-compatible servers).
        max_retries: Retries performed by the OpenAI client.
        client: Pre-built client, mainly for tests.
    """

    provider = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.2,
        max_tokens: int = 2000,
        timeout: float = 20.0,
        base_url: str | None = None,
        max_retries: int = 1,
        client: Any = None,  # noqa: ANN401
    ) -> None:
        if client is None and api_key:
            client = AsyncOpenAI(
                api_key=api_key, base_url=base_url, timeout=timeout, max_retries=max_retries
            )
        super().__init__(client, model, temperature, max_tokens)

    async def _complete(self, system: str, prompt: str) -> str | None:
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content if response.choices else None

    async def _ping(self) -> None:
        await self._client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": "Reply with OK"}],
            max_tokens=5,
        )


class AnthropicQueryGenerator(LanguageModelQueryGenerator):
    """
    ``QueryGenerator`` backed by an Anthropic Messages model.

    The Messages API has no JSON response mode, so the answer is read
    from the text blocks and goes through the same lenient parser.

    Args:
        api_key: API key; without it the generator is disabled.
        model: Model name.
        temperature: Sampling temperature.
        max_tokens: Response token limit.
        timeout: Request timeout in seconds.
        max_retries: Retries performed by the Anthropic client.
        client: Pre-built client, mainly for tests.
    """

    provider = "anthropic"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-3-5-haiku-20241022",
        temperature: float = 0.3,
        max_tokens: int = 1000,
        timeout: float = 20.0,
        max_retries: int = 1,
        client: Any = None,  # noqa: ANN401
    ) -> None:
        if client is None and api_key:
            client = AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=max_retries)
        super().__init__(client, model, temperature, max_tokens)

    async def _complete(self, system: str, prompt: str) -> str | None:
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        text = "".join(
            block.text for block in response.content or [] if getattr(block, "type", None) == "text"
        )
        return text or None

    async def _ping(self) -> None:
        await self._client.messages.create(
            model=self.model,
            max_tokens=5,
            messages=[{"role": "user", "content": "Reply with OK"}],
        )
