"""
Prompt Assembly

Builds the bounded prompt sent to the completion model for a query.

The template has three fixed parts:
    1. Persona: a casual personal assistant that already "knows" the
       user's life and never mentions notes or documents.
    2. Honesty rule: when the background knowledge does not answer the
       question, say so or hedge. Never invent details.
    3. The question and the enumerated excerpts with their scores.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

from mindnotes.core.config import settings
from mindnotes.schemas.query import EnrichedResult

PROMPT_TEMPLATE: Final[str] = """You're my personal assistant and a good friend who already knows the details of my life listed below. I'm going to ask you a question.

How to answer:
- Be brief, casual and conversational, like a friend chatting.
- Treat the background below as things you simply know about me. Never mention notes, documents, records or "what I wrote", and never say "based on" or "according to".
- Only use facts that appear in the background. If it doesn't contain the answer, or only part of it, say plainly that you don't know or aren't sure. Never make up names, dates, times, places or numbers.
- If asked for advice, give it directly, but don't invent facts about me to support it.

My question: "{query}"

What you know about me (most relevant first):
{context}

Reply only as a friend would, in a casual, direct and personal way."""

NO_CONTEXT: Final[str] = "(nothing relevant: you don't know anything about this)"


def _excerpt(content: str, max_chars: int) -> str:
    text = " ".join(content.split())
    if len(text) <= max_chars:
        return text
    return text[: max_chars - 3].rstrip() + "..."


def format_context(
    sources: Sequence[EnrichedResult],
    max_excerpt_chars: int | None = None,
    max_context_chars: int | None = None,
) -> str:
    """
    Enumerate excerpts as ``N. <excerpt> (relevance: <score>)``.

    Excerpts are truncated to ``max_excerpt_chars``; once adding the next
    line would exceed ``max_context_chars`` the rest are left out. At least
    one excerpt is always kept when ``sources`` is non-empty.
    """
    max_excerpt_chars = max_excerpt_chars or settings.PROMPT_MAX_EXCERPT_CHARS
    max_context_chars = max_context_chars or settings.PROMPT_MAX_CONTEXT_CHARS

    lines: list[str] = []
    used = 0
    for i, source in enumerate(sources, 1):
        line = f"{i}. {_excerpt(source.content, max_excerpt_chars)} (relevance: {source.score:.2f})"
        if lines and used + len(line) > max_context_chars:
            break
        lines.append(line)
        used += len(line) + 1

    return "\n".join(lines) if lines else NO_CONTEXT


def build_prompt(query: str, sources: Sequence[EnrichedResult]) -> str:
    """Assemble the full completion prompt for ``query``."""
    return PROMPT_TEMPLATE.format(query=query.strip(), context=format_context(sources))
