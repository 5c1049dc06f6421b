"""Relevance search over content metadata.

Scoring is additive case-insensitive substring matching per field:

    title +10, description +5, tags +4, body +3

Documents with no match are dropped. Results are ordered by descending score;
ties keep corpus order.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence

from .config import (
    BODY_MATCH_SCORE,
    DESCRIPTION_MATCH_SCORE,
    EXCERPT_MAX_LENGTH,
    HIGHLIGHT_MARKER,
    SNIPPET_CONTEXT_LENGTH,
    TAG_MATCH_SCORE,
    TITLE_MATCH_SCORE,
)
from .frontmatter import split
from .models import ContentMeta, SearchMatch, SearchResult
from .store import ContentStore

log = logging.getLogger(__name__)

# Applied in order; fenced blocks go first so inline-code stripping cannot eat fences
_MARKDOWN_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"```.*?```", re.DOTALL), ""),
    (re.compile(r"~~~.*?~~~", re.DOTALL), ""),
    (re.compile(r"^\s{0,3}#{1,6}\s+", re.MULTILINE), ""),
    (re.compile(r"^\s*(?:[-*+]|\d+\.)\s+", re.MULTILINE), ""),
    (re.compile(r"!\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"\*\*(.*?)\*\*"), r"\1"),
    (re.compile(r"__(.*?)__"), r"\1"),
    (re.compile(r"\*(.*?)\*"), r"\1"),
    (re.compile(r"(?<!\w)_(.*?)_(?!\w)"), r"\1"),
    (re.compile(r"`([^`]*)`"), r"\1"),
    (re.compile(r"^\s*>\s?", re.MULTILINE), ""),
]

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def strip_markdown(text: str) -> str:
    """Remove frontmatter and common Markdown syntax, keeping readable text."""
    block, body = split(text)
    plain = body if block is not None else text
    for pattern, replacement in _MARKDOWN_PATTERNS:
        plain = pattern.sub(replacement, plain)
    return plain.strip()


def extract_excerpt(content: str, max_length: int = EXCERPT_MAX_LENGTH) -> str:
    """First non-empty paragraph of the plain text, truncated with ``...``."""
    if not content:
        return ""
    paragraphs = [p.strip() for p in _PARAGRAPH_BREAK.split(strip_markdown(content))]
    first = next((p for p in paragraphs if p), "")
    if len(first) > max_length:
        return first[:max_length] + "..."
    return first


def highlight(text: str, query: str, marker: str = HIGHLIGHT_MARKER) -> str:
    """Wrap the first case-insensitive occurrence of ``query`` in ``marker``."""
    index = text.lower().find(query.lower())
    if index == -1 or not query:
        return text
    end = index + len(query)
    return f"{text[:index]}{marker}{text[index:end]}{marker}{text[end:]}"


def extract_snippet(
    content: str,
    query: str,
    context_length: int = SNIPPET_CONTEXT_LENGTH,
    marker: str = HIGHLIGHT_MARKER,
) -> str:
    """Context window around the first match with the match highlighted.

    The window is ``context_length`` characters split evenly around the
    match, widened outward to whitespace so no word is cut. ``...`` marks
    each side that stops short of the content boundary.
    """
    index = content.lower().find(query.lower())
    if index == -1 or not query:
        return extract_excerpt(content, context_length)

    half = context_length // 2
    match_end = index + len(query)
    start = max(0, index - half)
    end = min(len(content), match_end + half)

    while start > 0 and not content[start - 1].isspace():
        start -= 1
    while end < len(content) and not content[end].isspace():
        end += 1

    snippet = (
        content[start:index]
        + marker
        + content[index:match_end]
        + marker
        + content[match_end:end]
    )
    if start > 0:
        snippet = "..." + snippet
    if end < len(content):
        snippet = snippet + "..."
    return snippet


def _has_tags(item: ContentMeta, wanted: Sequence[str]) -> bool:
    have = {t.casefold() for t in item.frontmatter.tags}
    return all(t.casefold() in have for t in wanted)


def score_item(item: ContentMeta, query: str) -> tuple[float, list[SearchMatch]]:
    """Additive relevance score and per-field matches for one document."""
    needle = query.lower()
    fm = item.frontmatter
    score = 0.0
    matches: list[SearchMatch] = []

    if fm.title and needle in fm.title.lower():
        score += TITLE_MATCH_SCORE
        matches.append(SearchMatch(field="title", text=highlight(fm.title, query)))

    if fm.description and needle in fm.description.lower():
        score += DESCRIPTION_MATCH_SCORE
        matches.append(SearchMatch(field="description", text=highlight(fm.description, query)))

    body = item.body or ""
    if body and needle in body.lower():
        score += BODY_MATCH_SCORE
        matches.append(SearchMatch(field="content", text=extract_snippet(body, query)))

    if any(needle in tag.lower() for tag in fm.tags):
        score += TAG_MATCH_SCORE
        matches.append(SearchMatch(field="tags", text=f"Tags: {', '.join(fm.tags)}"))

    return score, matches


def _result(item: ContentMeta, score: float | None, matches: list[SearchMatch]) -> SearchResult:
    return SearchResult(
        path=item.path,
        slug=item.slug,
        title=item.frontmatter.title,
        description=item.frontmatter.description,
        excerpt=extract_excerpt(item.body or ""),
        matches=matches,
        score=score,
        tags=list(item.frontmatter.tags),
    )


def rank(
    corpus: Iterable[ContentMeta],
    query: str | None = None,
    tags: Sequence[str] = (),
) -> list[SearchResult]:
    """Filter by tags, then score and order by descending relevance.

    Without a query every tag-matching document is returned in corpus order
    with no score and no matches.
    """
    query = (query or "").strip()
    candidates = [item for item in corpus if not tags or _has_tags(item, tags)]

    if not query:
        return [_result(item, None, []) for item in candidates]

    results: list[SearchResult] = []
    for item in candidates:
        score, matches = score_item(item, query)
        if score > 0:
            results.append(_result(item, score, matches))

    # sorted() is stable, so equal scores keep corpus order
    return sorted(results, key=lambda r: -(r.score or 0))


def normalize_tag_filter(tag: str | None = None, tags: Iterable[str] | None = None) -> list[str]:
    """Merge a single ``tag`` and repeated ``tags`` into one de-duplicated list."""
    merged: list[str] = []
    for value in [tag, *(tags or [])]:
        if value and value.strip() and value.strip() not in merged:
            merged.append(value.strip())
    return merged


class SearchEngine:
    """Search the documents of a ContentStore."""

    def __init__(self, store: ContentStore) -> None:
        self.store = store

    async def search(
        self,
        query: str | None = None,
        tags: Sequence[str] | str | None = None,
        section: str = "",
    ) -> list[SearchResult]:
        """Rank documents under ``section`` against ``query`` and a tag filter.

        Returns an empty list when neither a query nor a tag is given.
        """
        if isinstance(tags, str):
            tags = [tags]
        tag_filter = normalize_tag_filter(tags=tags)
        if not (query or "").strip() and not tag_filter:
            return []

        corpus = await self.store.list(section, recursive=True, include_body=True)
        results = rank(corpus, query, tag_filter)
        log.debug(
            "Search q=%r tags=%s section=%r: %d of %d documents",
            query,
            tag_filter,
            section,
            len(results),
            len(corpus),
        )
        return results
