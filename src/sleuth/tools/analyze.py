"""Content analysis tool: facts, entities, phrases, summary, sentiment, topics.

Each analysis is one LLM prompt asking for strict JSON. Responses are
parsed defensively through coercion tables: malformed output degrades to
conservative defaults instead of failing the call, while transport and
provider errors from the completion call propagate.
"""

from __future__ import annotations

import asyncio
import contextlib
import re
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sleuth.config.schema import AnalyzeConfig
from sleuth.providers.base import PromptMessage
from sleuth.tools.base import (
    BaseTool,
    ToolContext,
    ToolResult,
    has_required_fields,
    to_jsonable,
    truncate_text,
)
from sleuth.tools.parsing import (
    Fallback,
    FieldRule,
    clamp,
    is_list,
    is_number,
    is_text,
    one_of,
    parse_record,
    parse_record_list,
    parse_string_list,
    string_items,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sleuth.providers.base import CompletionProvider

ANALYSIS_TYPES = ("extract", "summarize", "classify", "sentiment", "all")
ENTITY_TYPES = ("person", "organization", "location", "date", "number", "other")
SENTIMENT_LABELS = ("positive", "negative", "neutral")
EXTRACTION_TARGETS = ("facts", "entities", "key_phrases", "concepts")

MAX_CONTENT_LENGTH = 100_000
EXTRACT_CHARS = 8000
SUMMARY_CHARS = 10_000
LINE_FACT_CONFIDENCE = 0.7


# ─── Output types ─────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ExtractedFact:
    statement: str
    confidence: float
    sources: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ExtractedEntity:
    text: str
    type: str
    confidence: float


@dataclass(frozen=True, slots=True)
class Sentiment:
    score: float
    label: str


@dataclass(frozen=True, slots=True)
class Classification:
    category: str
    confidence: float


@dataclass(slots=True)
class AnalyzeOutput:
    """Analysis results; fields not requested by the analysis type stay None."""

    summary: str | None = None
    facts: list[ExtractedFact] | None = None
    entities: list[ExtractedEntity] | None = None
    key_phrases: list[str] | None = None
    concepts: list[str] | None = None
    sentiment: Sentiment | None = None
    classification: list[Classification] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in to_jsonable(self).items() if v is not None}


# ─── Coercion tables ──────────────────────────────────────────

_confidence = clamp(0.0, 1.0)

FACT_RULES: dict[str, FieldRule] = {
    "statement": FieldRule(accept=is_text, default=""),
    "confidence": FieldRule(accept=is_number, default=0.5, transform=_confidence),
    "sources": FieldRule(accept=is_list, default=[], transform=string_items),
}

ENTITY_RULES: dict[str, FieldRule] = {
    "text": FieldRule(accept=is_text, default=""),
    "type": FieldRule(accept=one_of(*ENTITY_TYPES), default="other"),
    "confidence": FieldRule(accept=is_number, default=0.7, transform=_confidence),
}

CLASSIFICATION_RULES: dict[str, FieldRule] = {
    "category": FieldRule(accept=is_text, default=""),
    "confidence": FieldRule(accept=is_number, default=0.5, transform=_confidence),
}

SENTIMENT_RULES: dict[str, FieldRule] = {
    "score": FieldRule(accept=is_number, default=0.0, transform=clamp(-1.0, 1.0)),
    "label": FieldRule(accept=one_of(*SENTIMENT_LABELS), default="neutral"),
}


# ─── Prompts ──────────────────────────────────────────────────

FACTS_PROMPT = """\
Extract factual statements from the following content. You MUST respond \
with ONLY valid JSON - no markdown, no code blocks, no explanations.

REQUIREMENTS:
- Each fact MUST be an object with three fields: "statement", "confidence", "sources"
- "statement" must be a complete factual sentence (string)
- "confidence" must be a decimal number between 0 and 1
- "sources" must be an array of strings (empty if no sources are mentioned)
- Do NOT return an array of strings; every item MUST be an object

Example:
[
  {{
    "statement": "Quantum computers use qubits that can exist in superposition",
    "confidence": 0.95,
    "sources": ["Nature Physics"]
  }}
]

Content to analyze:
{content}

Return a JSON array of fact objects. If no facts are found, return: []"""

ENTITIES_PROMPT = """\
Extract named entities from the content. Include people, organizations, \
locations, dates and numbers.

Content:
{content}

Return ONLY a valid JSON array in this exact format:
[{{"text": "entity name", "type": "person", "confidence": 0.9}}]

Valid types: "person", "organization", "location", "date", "number", "other"
If no entities are found, return: []"""

KEY_PHRASES_PROMPT = """\
Extract the 5-10 most important key phrases and terms from this content.
Return ONLY a valid JSON array of strings: ["phrase1", "phrase2", ...]

Content:
{content}

If no key phrases are found, return: []"""

CONCEPTS_PROMPT = """\
Identify the 3-7 main concepts and topics discussed in this content.
Return ONLY a valid JSON array of concept strings: ["concept1", "concept2", ...]

Content:
{content}

If no concepts are found, return: []"""

SUMMARY_PROMPT = """\
Provide a concise summary of the following content in 2-3 sentences:

{content}"""

SENTIMENT_PROMPT = """\
Analyze the sentiment of this content. Return ONLY valid JSON: \
{{"score": 0.5, "label": "neutral"}}
Score: -1 (very negative) to 1 (very positive)
Label: must be exactly "positive", "negative", or "neutral"

Content:
{content}"""

CLASSIFY_PROMPT = """\
Classify this content into 1-3 relevant categories. Return ONLY a valid JSON array:
[{{"category": "technology", "confidence": 0.9}}]

Possible categories: technology, science, business, politics, health, \
education, entertainment, sports, finance, culture, environment, law, etc.

Content:
{content}

If uncertain, return: []"""


# ─── Text fallback ────────────────────────────────────────────

_FACT_LINE_RE = re.compile(r"[-•]\s*(.+?)(?:\s*\(confidence:\s*([0-9.]+)\))?$")


def parse_facts_from_text(text: str) -> list[ExtractedFact]:
    """Read bullet lines such as ``- Statement (confidence: 0.9)``.

    Lines without a bullet are ignored; a missing or unreadable
    confidence becomes 0.7.
    """
    facts: list[ExtractedFact] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        match = _FACT_LINE_RE.search(line.rstrip())
        if match is None:
            continue
        confidence = LINE_FACT_CONFIDENCE
        if match.group(2):
            with contextlib.suppress(ValueError):
                confidence = _confidence(float(match.group(2)))
        facts.append(
            ExtractedFact(statement=match.group(1).strip(), confidence=confidence)
        )
    return facts


class AnalyzeTool(BaseTool[AnalyzeConfig, AnalyzeOutput]):
    """Analyze content and extract facts, entities, and insights."""

    name = "content_analyzer"
    description = "Analyze content and extract facts, entities, and insights"
    version = "1.0.0"
    config_class = AnalyzeConfig

    def __init__(
        self,
        config: AnalyzeConfig | None = None,
        *,
        completion: CompletionProvider,
        **overrides: Any,
    ) -> None:
        super().__init__(config, **overrides)
        self._completion = completion

    async def _execute_impl(
        self,
        input: Mapping[str, Any],
        context: ToolContext,
    ) -> ToolResult[AnalyzeOutput]:
        start = time.monotonic()
        content: str = input["content"]
        analysis_type = input.get("analysis_type") or self.config.default_analysis_type
        targets = input.get("extraction_targets") or {}
        output = AnalyzeOutput()

        context.logger.debug(
            "[%s] Starting %s analysis of %d chars",
            self.name,
            analysis_type,
            len(content),
        )

        if analysis_type in ("all", "extract"):
            excerpt = truncate_text(content, EXTRACT_CHARS)
            (
                output.facts,
                output.entities,
                output.key_phrases,
                output.concepts,
            ) = await asyncio.gather(
                self._extract_facts(excerpt, targets),
                self._extract_entities(excerpt, targets),
                self._extract_strings(
                    KEY_PHRASES_PROMPT, excerpt, targets, "key_phrases"
                ),
                self._extract_strings(CONCEPTS_PROMPT, excerpt, targets, "concepts"),
            )

        if analysis_type in ("all", "summarize"):
            output.summary = await self._summarize(content)

        if analysis_type in ("all", "sentiment"):
            output.sentiment = await self._analyze_sentiment(content)

        if analysis_type in ("all", "classify"):
            output.classification = await self._classify(content)

        context.logger.info(
            "[%s] Analysis completed: %d facts, %d entities, %d key phrases, "
            "%d concepts",
            self.name,
            len(output.facts or []),
            len(output.entities or []),
            len(output.key_phrases or []),
            len(output.concepts or []),
        )
        return ToolResult.ok(
            output,
            analysis_type=analysis_type,
            content_length=len(content),
            analysis_time=(time.monotonic() - start) * 1000,
        )

    async def _complete(self, prompt: str) -> str:
        response = await self._completion.complete(
            [PromptMessage(role="user", content=prompt)],
            model=self.config.llm_model,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )
        return self._completion.extract_text(response).strip()

    async def _extract_facts(
        self, content: str, targets: Mapping[str, bool]
    ) -> list[ExtractedFact]:
        if targets.get("facts") is False:
            return []
        text = await self._complete(FACTS_PROMPT.format(content=content))
        parsed = parse_record_list(text, FACT_RULES)
        if isinstance(parsed, Fallback) and parsed.unparsed:
            return parse_facts_from_text(text)
        return [ExtractedFact(**record) for record in parsed.value]

    async def _extract_entities(
        self, content: str, targets: Mapping[str, bool]
    ) -> list[ExtractedEntity]:
        if targets.get("entities") is False:
            return []
        text = await self._complete(ENTITIES_PROMPT.format(content=content))
        parsed = parse_record_list(text, ENTITY_RULES)
        return [ExtractedEntity(**record) for record in parsed.value]

    async def _extract_strings(
        self,
        prompt: str,
        content: str,
        targets: Mapping[str, bool],
        target: str,
    ) -> list[str]:
        if targets.get(target) is False:
            return []
        text = await self._complete(prompt.format(content=content))
        return parse_string_list(text).value

    async def _summarize(self, content: str) -> str:
        excerpt = truncate_text(content, SUMMARY_CHARS)
        return await self._complete(SUMMARY_PROMPT.format(content=excerpt))

    async def _analyze_sentiment(self, content: str) -> Sentiment:
        excerpt = truncate_text(content, EXTRACT_CHARS)
        text = await self._complete(SENTIMENT_PROMPT.format(content=excerpt))
        return Sentiment(**parse_record(text, SENTIMENT_RULES).value)

    async def _classify(self, content: str) -> list[Classification]:
        excerpt = truncate_text(content, EXTRACT_CHARS)
        text = await self._complete(CLASSIFY_PROMPT.format(content=excerpt))
        parsed = parse_record_list(text, CLASSIFICATION_RULES)
        return [Classification(**record) for record in parsed.value]

    async def validate_input(self, input: Any) -> bool:
        if not isinstance(input, dict) or not has_required_fields(input, ["content"]):
            return False
        content = input["content"]
        if not isinstance(content, str) or not content.strip():
            return False
        if len(content) > MAX_CONTENT_LENGTH:
            return False

        analysis_type = input.get("analysis_type")
        if analysis_type is not None and analysis_type not in ANALYSIS_TYPES:
            return False

        targets = input.get("extraction_targets")
        if targets is not None:
            if not isinstance(targets, dict):
                return False
            if any(not isinstance(v, bool) for v in targets.values()):
                return False
        return True

    def get_input_schema(self) -> dict[str, Any]:
        target_descriptions = {
            "facts": "Extract factual statements",
            "entities": "Extract named entities (people, organizations, locations)",
            "key_phrases": "Extract key phrases and terms",
            "concepts": "Extract main concepts and topics",
        }
        return {
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "The content to analyze",
                    "maxLength": MAX_CONTENT_LENGTH,
                },
                "analysis_type": {
                    "type": "string",
                    "enum": list(ANALYSIS_TYPES),
                    "description": "Type of analysis to perform",
                    "default": self.config.default_analysis_type,
                },
                "extraction_targets": {
                    "type": "object",
                    "description": "Specific extraction targets",
                    "properties": {
                        name: {
                            "type": "boolean",
                            "description": description,
                            "default": True,
                        }
                        for name, description in target_descriptions.items()
                    },
                },
            },
            "required": ["content"],
        }
