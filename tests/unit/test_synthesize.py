"""Tests for the multi-source synthesis tool."""

from __future__ import annotations

import json
import logging

import pytest

from sleuth.core.errors import ProviderOverloadedError
from sleuth.tools.synthesize import (
    Citation,
    SynthesisSection,
    SynthesizeTool,
    build_citations,
    build_prompt,
    calculate_confidence,
    extract_source_references,
    format_sources,
    parse_markdown_sections,
    parse_structured_synthesis,
)
from tests.fixtures.providers import FakeCompletionProvider

SOURCES = [
    {
        "content": "Surface codes need thousands of physical qubits per logical qubit.",
        "url": "https://example.com/surface",
        "title": "Surface codes",
    },
    {
        "content": "LDPC codes promise a tenfold reduction in qubit overhead.",
        "url": "https://example.org/ldpc",
    },
]

REPORT = """\
Overview text before any heading.

## Background
Surface codes dominate today [1].

## Key Findings
- LDPC codes cut overhead [2]
- Surface codes are proven [1]

## Outlook
Both approaches are converging [1][2].
"""


def _tool(provider: FakeCompletionProvider, **overrides) -> SynthesizeTool:
    tool = SynthesizeTool(completion=provider, **overrides)
    tool.retry_base_delay = 0
    return tool


# ─── Prompt building ──────────────────────────────────────────


class TestFormatSources:
    def test_numbered_blocks(self):
        text = format_sources(SOURCES)
        assert text == (
            "Source [1]:\n"
            "Title: Surface codes\n"
            "URL: https://example.com/surface\n"
            "Content:\n"
            f"{SOURCES[0]['content']}"
            "\n\n---\n\n"
            "Source [2]:\n"
            "URL: https://example.org/ldpc\n"
            "Content:\n"
            f"{SOURCES[1]['content']}"
        )

    def test_content_truncated(self):
        text = format_sources([{"content": "x" * 5000}])
        assert "x" * 3000 not in text
        assert text.endswith("...")


class TestBuildPrompt:
    def test_includes_goal_and_format(self):
        prompt = build_prompt(SOURCES, "Compare codes", "bullets")
        assert "Goal: Compare codes" in prompt
        assert "bullet points" in prompt
        assert "approximately" not in prompt

    def test_length_hint(self):
        prompt = build_prompt(SOURCES, "g", "summary", max_length=250)
        assert "approximately 250 words" in prompt

    def test_structured_asks_for_json(self):
        assert '"key_findings"' in build_prompt(SOURCES, "g", "structured")


# ─── Response parsing ─────────────────────────────────────────


def test_extract_source_references_unique_in_order():
    assert extract_source_references("a [2] b [1] c [2] d [10]") == ["2", "1", "10"]


class TestParseMarkdownSections:
    def test_sections_and_findings(self):
        sections, findings = parse_markdown_sections(REPORT)
        assert [s.heading for s in sections] == ["Background", "Key Findings", "Outlook"]
        assert sections[0] == SynthesisSection(
            heading="Background",
            content="Surface codes dominate today [1].",
            sources=["1"],
        )
        assert sections[2].sources == ["1", "2"]
        assert findings == ["LDPC codes cut overhead [2]", "Surface codes are proven [1]"]

    def test_no_headings(self):
        assert parse_markdown_sections("plain text") == ([], [])


class TestParseStructuredSynthesis:
    def test_json(self):
        payload = {
            "sections": [
                {"heading": "Overhead", "content": "LDPC wins [2]", "sources": ["2"]},
                "garbage",
            ],
            "key_findings": ["LDPC reduces overhead", 7],
        }
        sections, findings = parse_structured_synthesis(json.dumps(payload))
        assert sections[0] == SynthesisSection("Overhead", "LDPC wins [2]", ["2"])
        assert sections[1] == SynthesisSection("", "", [])
        assert findings == ["LDPC reduces overhead", "7"]

    def test_fenced_json(self):
        text = '```json\n{"sections": [], "key_findings": ["x"]}\n```'
        assert parse_structured_synthesis(text) == ([], ["x"])

    def test_markdown_fallback(self):
        sections, findings = parse_structured_synthesis(REPORT)
        assert len(sections) == 3
        assert len(findings) == 2


# ─── Confidence ───────────────────────────────────────────────


class TestCalculateConfidence:
    def test_single_short_source(self):
        assert calculate_confidence([{"content": "short"}]) == 0.6

    def test_source_bonus_capped(self):
        sources = [{"content": "short"}] * 5
        assert calculate_confidence(sources) == 0.8

    def test_all_bonuses_capped_at_one(self):
        sources = [
            {"content": "x" * 1500, "metadata": {"credibility_score": 0.9}},
            {"content": "x" * 1500},
            {"content": "x" * 1500},
        ]
        assert calculate_confidence(sources) == 1.0

    def test_credibility_must_exceed_threshold(self):
        sources = [{"content": "s", "metadata": {"credibility_score": 0.8}}]
        assert calculate_confidence(sources) == 0.6

    def test_non_numeric_credibility_ignored(self):
        sources = [{"content": "s", "metadata": {"credibility_score": "high"}}]
        assert calculate_confidence(sources) == 0.6

    def test_empty(self):
        assert calculate_confidence([]) == 0.5


def test_build_citations():
    assert build_citations(SOURCES) == [
        Citation(1, "https://example.com/surface", "Surface codes"),
        Citation(2, "https://example.org/ldpc", None),
    ]


# ─── Execution ────────────────────────────────────────────────


class TestExecute:
    async def test_summary(self):
        provider = FakeCompletionProvider(default="  LDPC codes reduce overhead [2].  ")
        result = await _tool(provider).execute(
            {"sources": SOURCES, "synthesis_goal": "Compare codes"}
        )
        assert result.success is True
        output = result.data
        assert output.synthesis == "LDPC codes reduce overhead [2]."
        assert output.sections is None
        assert output.key_findings is None
        assert output.confidence == 0.7
        assert [c.citation_number for c in output.sources] == [1, 2]
        assert result.metadata["source_count"] == 2
        assert result.metadata["confidence"] == 0.7
        assert "synthesis_time" in result.metadata

        call = provider.call_log[0]
        assert call["max_tokens"] == 8000
        assert call["temperature"] == 0.4
        assert "Source [2]:" in call["messages"][0].content

    async def test_report_sections(self):
        provider = FakeCompletionProvider(default=REPORT)
        result = await _tool(provider).execute(
            {"sources": SOURCES, "synthesis_goal": "g", "output_format": "report"}
        )
        assert [s.heading for s in result.data.sections] == [
            "Background",
            "Key Findings",
            "Outlook",
        ]
        assert len(result.data.key_findings) == 2

    async def test_single_source_warns(self, caplog):
        provider = FakeCompletionProvider(default="ok")
        with caplog.at_level(logging.WARNING, logger="sleuth.tools"):
            result = await _tool(provider).execute(
                {"sources": SOURCES[:1], "synthesis_goal": "g"}
            )
        assert result.success is True
        assert any("2+ sources" in r.getMessage() for r in caplog.records)

    async def test_retries_provider_errors(self):
        provider = FakeCompletionProvider(
            default="ok",
            error=ProviderOverloadedError("anthropic", "busy"),
            fail_times=2,
        )
        result = await _tool(provider).execute(
            {"sources": SOURCES, "synthesis_goal": "g"}
        )
        assert result.success is True
        assert len(provider.call_log) == 3

    async def test_exhausted_retries_fail(self):
        provider = FakeCompletionProvider(
            error=ProviderOverloadedError("anthropic", "busy"), fail_times=100
        )
        result = await _tool(provider).execute(
            {"sources": SOURCES, "synthesis_goal": "g"}
        )
        assert result.success is False
        assert "busy" in result.error
        # default synthesize budget: 1 attempt + 2 retries
        assert len(provider.call_log) == 3


class TestDetectContradictions:
    async def test_parses_list(self):
        provider = FakeCompletionProvider(
            default='["Sources disagree on qubit overhead"]'
        )
        contradictions = await _tool(provider).detect_contradictions(SOURCES)
        assert contradictions == ["Sources disagree on qubit overhead"]
        assert provider.call_log[0]["max_tokens"] == 2000
        assert "contradictions" in provider.prompts()[0]

    async def test_unusable_answer(self):
        provider = FakeCompletionProvider(default="I found none.")
        assert await _tool(provider).detect_contradictions(SOURCES) == []


# ─── Validation ───────────────────────────────────────────────


class TestValidateInput:
    @pytest.mark.parametrize(
        "payload",
        [
            {"sources": SOURCES, "synthesis_goal": "g"},
            {"sources": [{"content": "c"}], "synthesis_goal": "g"},
            {"sources": SOURCES, "synthesis_goal": "g", "output_format": "bullets"},
            {"sources": SOURCES, "synthesis_goal": "g", "max_length": 100},
            {"sources": SOURCES, "synthesis_goal": "g", "max_length": 10_000},
        ],
    )
    async def test_valid(self, payload):
        assert await _tool(FakeCompletionProvider()).validate_input(payload) is True

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            {"synthesis_goal": "g"},
            {"sources": [], "synthesis_goal": "g"},
            {"sources": "text", "synthesis_goal": "g"},
            {"sources": [{"url": "https://a.com"}], "synthesis_goal": "g"},
            {"sources": [{"content": "  "}], "synthesis_goal": "g"},
            {"sources": ["plain"], "synthesis_goal": "g"},
            {"sources": SOURCES},
            {"sources": SOURCES, "synthesis_goal": "   "},
            {"sources": SOURCES, "synthesis_goal": "g", "output_format": "essay"},
            {"sources": SOURCES, "synthesis_goal": "g", "max_length": 99},
            {"sources": SOURCES, "synthesis_goal": "g", "max_length": 10_001},
            {"sources": SOURCES, "synthesis_goal": "g", "max_length": 500.0},
        ],
    )
    async def test_invalid(self, payload):
        assert await _tool(FakeCompletionProvider()).validate_input(payload) is False


def test_identity_and_schema():
    tool = _tool(FakeCompletionProvider())
    assert tool.name == "synthesizer"
    schema = tool.get_input_schema()
    assert schema["required"] == ["sources", "synthesis_goal"]
    assert schema["properties"]["output_format"]["enum"] == [
        "summary",
        "report",
        "bullets",
        "structured",
    ]
