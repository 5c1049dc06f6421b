"""Configuration management for docwiki.

This module contains all configurable constants for the content store.
Magic numbers are documented here rather than scattered throughout the codebase.
"""

import os
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when required configuration is missing."""

    pass


def get_content_root() -> Path:
    """Get the content root directory.

    Discovery order:
    1. DOCWIKI_CONTENT_ROOT environment variable (explicit override)
    2. ./content relative to the current working directory, if it exists
    3. Error with helpful message

    Raises:
        ConfigurationError: If no content root can be found.
    """
    root = os.environ.get("DOCWIKI_CONTENT_ROOT")
    if root:
        return Path(root)

    local = Path.cwd() / "content"
    if local.is_dir():
        return local

    raise ConfigurationError(
        "No content directory found. Options:\n"
        "  1. Create ./content in the current directory\n"
        "  2. Set DOCWIKI_CONTENT_ROOT to an existing directory"
    )


def is_debug() -> bool:
    """Whether error responses may include internal details."""
    return os.environ.get("DOCWIKI_DEBUG", "").lower() in ("1", "true", "yes")


def get_index_ttl() -> float:
    """Seconds a cached listing stays fresh (0 disables the in-memory index)."""
    raw = os.environ.get("DOCWIKI_INDEX_TTL")
    if not raw:
        return INDEX_TTL_SECONDS
    try:
        return max(0.0, float(raw))
    except ValueError:
        return INDEX_TTL_SECONDS


# =============================================================================
# Paths
# =============================================================================

# Longest logical path accepted by the path validator
MAX_PATH_LENGTH = 255

# Extensions treated as content documents
MARKDOWN_EXTENSIONS = (".md", ".mdx")

# =============================================================================
# Pagination
# =============================================================================

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100

# =============================================================================
# Search
# =============================================================================

# Field weights for the additive relevance score
TITLE_MATCH_SCORE = 10
DESCRIPTION_MATCH_SCORE = 5
TAG_MATCH_SCORE = 4
BODY_MATCH_SCORE = 3

# Maximum characters in a listing/search excerpt before "..." is appended
EXCERPT_MAX_LENGTH = 150

# Total characters of context around a body match in a search snippet
SNIPPET_CONTEXT_LENGTH = 200

# Marker wrapped around matched text
HIGHLIGHT_MARKER = "**"

# =============================================================================
# Uploads
# =============================================================================

# 10 MB
UPLOAD_MAX_BYTES = 10 * 1024 * 1024

UPLOAD_ALLOWED_EXTENSIONS = (
    ".md",
    ".mdx",
    ".txt",
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".svg",
    ".pdf",
    ".docx",
    ".xlsx",
    ".csv",
    ".json",
)

# =============================================================================
# Content index
# =============================================================================

# Default freshness window for cached listings. 0 means every read re-scans disk.
INDEX_TTL_SECONDS = 0.0
