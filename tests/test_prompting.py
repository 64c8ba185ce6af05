"""
Prompt Assembly Unit Tests

Verifies the completion prompt: question embedding, enumerated excerpts
with scores, size bounds and the don't-make-things-up instruction.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from mindnotes.schemas.query import EnrichedResult
from mindnotes.services.prompting import NO_CONTEXT, build_prompt, format_context


def _source(content: str, score: float) -> EnrichedResult:
    now = datetime(2026, 1, 1, tzinfo=UTC)
    return EnrichedResult(
        id=uuid.uuid4(),
        owner_id="u1",
        content=content,
        pinned=False,
        created_at=now,
        updated_at=now,
        score=score,
    )


class TestFormatContext:
    def test_enumerates_with_scores(self):
        context = format_context([_source("Dentist Friday 3pm", 0.873), _source("Buy milk", 0.2)])

        assert context.splitlines() == [
            "1. Dentist Friday 3pm (relevance: 0.87)",
            "2. Buy milk (relevance: 0.20)",
        ]

    def test_empty_sources(self):
        assert format_context([]) == NO_CONTEXT

    def test_long_excerpt_truncated(self):
        context = format_context([_source("word " * 500, 0.5)], max_excerpt_chars=50)

        excerpt = context.split(". ", 1)[1].rsplit(" (relevance", 1)[0]
        assert len(excerpt) <= 50
        assert excerpt.endswith("...")

    def test_whitespace_collapsed(self):
        context = format_context([_source("line one\n\n  line two", 0.5)])

        assert "line one line two" in context

    def test_total_size_bounded_but_keeps_first(self):
        sources = [_source("x" * 100, 0.9 - i / 10) for i in range(5)]

        context = format_context(sources, max_excerpt_chars=200, max_context_chars=150)

        assert len(context.splitlines()) == 1
        assert context.startswith("1. ")


class TestBuildPrompt:
    def test_contains_question_and_excerpts(self):
        prompt = build_prompt("  when is my dentist?  ", [_source("Dentist Friday 3pm", 0.8)])

        assert 'My question: "when is my dentist?"' in prompt
        assert "1. Dentist Friday 3pm (relevance: 0.80)" in prompt

    def test_instructs_not_to_fabricate(self):
        prompt = build_prompt("what's my boss's name?", [])

        assert "don't know" in prompt
        assert "Never make up" in prompt
        assert NO_CONTEXT in prompt

    def test_never_mentions_notes(self):
        prompt = build_prompt("anything", [])

        assert "Never mention notes" in prompt
