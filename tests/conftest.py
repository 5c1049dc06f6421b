"""Shared test fixtures for the docwiki test suite.

Design:
- content_root: isolated content directory with DOCWIKI_CONTENT_ROOT pointing at it
- store: ContentStore over content_root with the in-memory index disabled
- write_doc: helper that writes a Markdown file with a frontmatter block
- runner: CliRunner for the dw CLI
"""

from pathlib import Path
from typing import Callable

import pytest
from click.testing import CliRunner

from docwiki.store import ContentStore


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


def make_doc(
    root: Path,
    rel_path: str,
    title: str | None = None,
    body: str = "",
    tags: list[str] | None = None,
    description: str | None = None,
    extra: str = "",
) -> Path:
    """Write ``rel_path`` below ``root`` with a frontmatter block built from the arguments."""
    lines = ["---"]
    if title is not None:
        lines.append(f"title: {title}")
    if description is not None:
        lines.append(f"description: {description}")
    if tags:
        lines.append(f"tags: [{', '.join(tags)}]")
    if extra:
        lines.append(extra.rstrip("\n"))
    lines.append("---")
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n\n" + body, encoding="utf-8")
    return path


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def content_root(tmp_path: Path, monkeypatch) -> Path:
    """Empty content directory; DOCWIKI_CONTENT_ROOT points at it."""
    root = tmp_path / "content"
    root.mkdir()
    monkeypatch.setenv("DOCWIKI_CONTENT_ROOT", str(root))
    monkeypatch.delenv("DOCWIKI_INDEX_TTL", raising=False)
    monkeypatch.delenv("DOCWIKI_DEBUG", raising=False)
    return root


@pytest.fixture
def store(content_root: Path) -> ContentStore:
    return ContentStore(content_root, index_ttl=0)


@pytest.fixture
def write_doc(content_root: Path) -> Callable[..., Path]:
    """Write a content file below content_root.

    Usage:
        def test_something(write_doc):
            write_doc("hipaa/overview.md", title="Overview", body="Text", tags=["hipaa"])
    """

    def _write(rel_path: str, **kwargs) -> Path:
        return make_doc(content_root, rel_path, **kwargs)

    return _write


@pytest.fixture
def hipaa_corpus(write_doc) -> None:
    """The two-document HIPAA corpus used by the search scenarios."""
    write_doc(
        "hipaa/documentation.md",
        title="HIPAA Documentation",
        tags=["hipaa", "compliance"],
        body="Policies and procedures for protected health information.\n",
    )
    write_doc(
        "hipaa/technical-security.md",
        title="Technical Security Standards",
        tags=["hipaa", "security"],
        body="Access control, audit controls and transmission security.\n",
    )


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()
