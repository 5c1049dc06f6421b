"""docwiki: a documentation wiki whose content lives as Markdown files on disk."""

__version__ = "0.1.0"
