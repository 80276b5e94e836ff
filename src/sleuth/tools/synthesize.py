"""Multi-source synthesis tool.

Sources are numbered into one prompt so the model can cite them as
``[n]``. Report and structured formats are parsed into sections and key
findings, from JSON when the model returned it and from ``##`` markdown
headings otherwise. Confidence is a deterministic heuristic over the
inputs, never a model output.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sleuth.config.schema import SynthesizeConfig
from sleuth.providers.base import PromptMessage
from sleuth.tools.base import (
    BaseTool,
    ToolContext,
    ToolResult,
    has_required_fields,
    is_int_in_range,
    to_jsonable,
    truncate_text,
)
from sleuth.tools.parsing import (
    FieldRule,
    Ok,
    coerce_record,
    is_list,
    is_number,
    is_text,
    parse_record,
    parse_string_list,
    string_items,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from sleuth.providers.base import CompletionProvider

OUTPUT_FORMATS = ("summary", "report", "bullets", "structured")
SOURCE_CHARS = 3000
MIN_LENGTH = 100
MAX_LENGTH = 10_000
CONTRADICTION_MAX_TOKENS = 2000

_HEADING_RE = re.compile(r"^##\s+(.+)$", re.MULTILINE)
_CITATION_RE = re.compile(r"\[(\d+)\]")
_BULLET_RE = re.compile(r"^[-*•]\s+(.+)$", re.MULTILINE)


@dataclass(frozen=True, slots=True)
class SynthesisSection:
    heading: str
    content: str
    sources: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class Citation:
    citation_number: int
    url: str | None = None
    title: str | None = None


@dataclass(slots=True)
class SynthesizeOutput:
    """Synthesis text plus citations; sections only for report/structured."""

    synthesis: str
    sources: list[Citation]
    confidence: float
    sections: list[SynthesisSection] | None = None
    key_findings: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in to_jsonable(self).items() if v is not None}


SECTION_RULES: dict[str, FieldRule] = {
    "heading": FieldRule(accept=is_text, default=""),
    "content": FieldRule(accept=is_text, default=""),
    "sources": FieldRule(accept=is_list, default=[], transform=string_items),
}

STRUCTURED_RULES: dict[str, FieldRule] = {
    "sections": FieldRule(accept=is_list, default=[]),
    "key_findings": FieldRule(accept=is_list, default=[], transform=string_items),
}

FORMAT_INSTRUCTIONS = {
    "summary": (
        "Provide a concise summary that synthesizes the key information "
        "from all sources."
    ),
    "report": (
        "Create a structured report with sections (use ## for headings), "
        'detailed analysis, and citations. Include a "Key Findings" section.'
    ),
    "bullets": (
        "Present the synthesis as clear, organized bullet points with "
        "citations. Group related information together."
    ),
    "structured": (
        "Return valid JSON with this structure: "
        '{"sections": [{"heading": "...", "content": "...", "sources": ["1", "2"]}], '
        '"key_findings": ["finding1", "finding2"]}'
    ),
}

SYNTHESIS_PROMPT = """\
You are synthesizing information from multiple sources to create a \
comprehensive analysis.

Goal: {goal}

Sources:
{sources}

Task: {task}
{length}

Guidelines:
1. Integrate information from ALL sources
2. Cross-reference and compare findings across sources
3. Note any contradictions or disagreements between sources
4. Include citations using [1], [2], etc. notation
5. Highlight key insights and patterns
6. Maintain objectivity and balance
7. Synthesize rather than summarize: find connections and themes

Synthesis:"""

CONTRADICTIONS_PROMPT = """\
Analyze these sources and identify any contradictions or disagreements:

{sources}

Return ONLY a valid JSON array of contradictions: ["contradiction 1", "contradiction 2"]
If there are no contradictions, return an empty array: []"""


# ─── Prompt building ──────────────────────────────────────────


def format_sources(sources: Sequence[Mapping[str, Any]]) -> str:
    """Render sources as numbered blocks that the model can cite as ``[n]``."""
    blocks = []
    for number, source in enumerate(sources, 1):
        lines = [f"Source [{number}]:"]
        if source.get("title"):
            lines.append(f"Title: {source['title']}")
        if source.get("url"):
            lines.append(f"URL: {source['url']}")
        lines.append("Content:")
        lines.append(truncate_text(source["content"], SOURCE_CHARS))
        blocks.append("\n".join(lines))
    return "\n\n---\n\n".join(blocks)


def build_prompt(
    sources: Sequence[Mapping[str, Any]],
    goal: str,
    output_format: str,
    max_length: int | None = None,
) -> str:
    length = (
        f"Keep the synthesis to approximately {max_length} words." if max_length else ""
    )
    return SYNTHESIS_PROMPT.format(
        goal=goal,
        sources=format_sources(sources),
        task=FORMAT_INSTRUCTIONS.get(output_format, FORMAT_INSTRUCTIONS["summary"]),
        length=length,
    )


# ─── Response parsing ─────────────────────────────────────────


def extract_source_references(text: str) -> list[str]:
    """Unique ``[n]`` citation numbers in order of first appearance."""
    return list(dict.fromkeys(_CITATION_RE.findall(text)))


def _is_key_findings(heading: str) -> bool:
    lowered = heading.lower()
    return "key" in lowered and "finding" in lowered


def parse_markdown_sections(
    text: str,
) -> tuple[list[SynthesisSection], list[str]]:
    """Split on ``##`` headings; bullets under "Key Findings" become findings."""
    sections: list[SynthesisSection] = []
    findings: list[str] = []
    parts = _HEADING_RE.split(text)
    # parts = [preamble, heading1, body1, heading2, body2, ...]
    for i in range(1, len(parts), 2):
        heading = parts[i].strip()
        body = parts[i + 1].strip() if i + 1 < len(parts) else ""
        sections.append(
            SynthesisSection(
                heading=heading,
                content=body,
                sources=extract_source_references(body),
            )
        )
        if _is_key_findings(heading):
            findings.extend(m.strip() for m in _BULLET_RE.findall(body))
    return sections, findings


def parse_structured_synthesis(
    text: str,
) -> tuple[list[SynthesisSection], list[str]]:
    """Read sections and findings from JSON, else from markdown headings."""
    parsed = parse_record(text, STRUCTURED_RULES)
    if isinstance(parsed, Ok):
        sections = [
            SynthesisSection(**coerce_record(raw, SECTION_RULES))
            for raw in parsed.value["sections"]
        ]
        return sections, parsed.value["key_findings"]
    return parse_markdown_sections(text)


# ─── Confidence ───────────────────────────────────────────────


def calculate_confidence(sources: Sequence[Mapping[str, Any]]) -> float:
    """Heuristic confidence from source count, credibility and depth.

    Base 0.5, plus 0.1 per source (at most 0.3), plus 0.1 when any
    source's ``metadata.credibility_score`` exceeds 0.8, plus 0.1 when
    the mean content length exceeds 1000 characters; capped at 1.0.
    """
    if not sources:
        return 0.5
    confidence = 0.5 + min(len(sources) * 0.1, 0.3)

    if any(_credibility(s) > 0.8 for s in sources):
        confidence += 0.1

    average_length = sum(len(s["content"]) for s in sources) / len(sources)
    if average_length > 1000:
        confidence += 0.1

    return min(round(confidence, 10), 1.0)


def _credibility(source: Mapping[str, Any]) -> float:
    metadata = source.get("metadata")
    if not isinstance(metadata, dict):
        return 0.0
    score = metadata.get("credibility_score")
    return float(score) if is_number(score) else 0.0


def build_citations(sources: Sequence[Mapping[str, Any]]) -> list[Citation]:
    return [
        Citation(
            citation_number=number,
            url=source.get("url"),
            title=source.get("title"),
        )
        for number, source in enumerate(sources, 1)
    ]


class SynthesizeTool(BaseTool[SynthesizeConfig, SynthesizeOutput]):
    """Synthesize information from multiple sources into coherent output."""

    name = "synthesizer"
    description = "Synthesize information from multiple sources into coherent output"
    version = "1.0.0"
    config_class = SynthesizeConfig

    def __init__(
        self,
        config: SynthesizeConfig | None = None,
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
    ) -> ToolResult[SynthesizeOutput]:
        start = time.monotonic()
        sources: list[dict[str, Any]] = input["sources"]
        goal: str = input["synthesis_goal"]
        output_format = input.get("output_format") or "summary"

        if len(sources) < 2:
            context.logger.warning(
                "[%s] Synthesis works best with 2+ sources (got %d)",
                self.name,
                len(sources),
            )
        context.logger.debug(
            "[%s] Synthesizing %d sources as %s",
            self.name,
            len(sources),
            output_format,
        )

        prompt = build_prompt(sources, goal, output_format, input.get("max_length"))
        response = await self._with_retry(
            lambda: self._completion.complete(
                [PromptMessage(role="user", content=prompt)],
                model=self.config.llm_model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            ),
            context,
        )
        text = self._completion.extract_text(response).strip()

        sections: list[SynthesisSection] | None = None
        key_findings: list[str] | None = None
        if output_format in ("report", "structured"):
            sections, key_findings = parse_structured_synthesis(text)

        confidence = calculate_confidence(sources)
        output = SynthesizeOutput(
            synthesis=text,
            sources=build_citations(sources),
            confidence=confidence,
            sections=sections,
            key_findings=key_findings,
        )

        context.logger.info(
            "[%s] Synthesis completed: %d chars, confidence %.2f",
            self.name,
            len(text),
            confidence,
        )
        return ToolResult.ok(
            output,
            source_count=len(sources),
            synthesis_time=(time.monotonic() - start) * 1000,
            confidence=confidence,
        )

    async def detect_contradictions(
        self, sources: Sequence[Mapping[str, Any]]
    ) -> list[str]:
        """Ask the model which sources disagree; ``[]`` if the answer is unusable."""
        prompt = CONTRADICTIONS_PROMPT.format(sources=format_sources(sources))
        response = await self._completion.complete(
            [PromptMessage(role="user", content=prompt)],
            model=self.config.llm_model,
            max_tokens=CONTRADICTION_MAX_TOKENS,
            temperature=self.config.temperature,
        )
        return parse_string_list(self._completion.extract_text(response)).value

    async def validate_input(self, input: Any) -> bool:
        if not isinstance(input, dict) or not has_required_fields(
            input, ["sources", "synthesis_goal"]
        ):
            return False

        sources = input["sources"]
        if not isinstance(sources, list) or not sources:
            return False
        for source in sources:
            if not isinstance(source, dict):
                return False
            content = source.get("content")
            if not isinstance(content, str) or not content.strip():
                return False

        goal = input["synthesis_goal"]
        if not isinstance(goal, str) or not goal.strip():
            return False

        output_format = input.get("output_format")
        if output_format is not None and output_format not in OUTPUT_FORMATS:
            return False

        max_length = input.get("max_length")
        return max_length is None or is_int_in_range(max_length, MIN_LENGTH, MAX_LENGTH)

    def get_input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "sources": {
                    "type": "array",
                    "description": "Array of sources to synthesize",
                    "items": {
                        "type": "object",
                        "properties": {
                            "content": {
                                "type": "string",
                                "description": "Content from the source",
                            },
                            "url": {
                                "type": "string",
                                "description": "Source URL (optional)",
                            },
                            "title": {
                                "type": "string",
                                "description": "Source title (optional)",
                            },
                            "metadata": {
                                "type": "object",
                                "description": (
                                    "Additional metadata (optional), e.g. "
                                    "credibility_score"
                                ),
                            },
                        },
                        "required": ["content"],
                    },
                    "minItems": 1,
                },
                "synthesis_goal": {
                    "type": "string",
                    "description": "What you want to achieve with the synthesis",
                },
                "output_format": {
                    "type": "string",
                    "enum": list(OUTPUT_FORMATS),
                    "description": "Desired output format",
                    "default": "summary",
                },
                "max_length": {
                    "type": "integer",
                    "description": "Maximum length of synthesis in words",
                    "minimum": MIN_LENGTH,
                    "maximum": MAX_LENGTH,
                },
            },
            "required": ["sources", "synthesis_goal"],
        }
