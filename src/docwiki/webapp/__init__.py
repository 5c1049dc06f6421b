"""HTTP boundary for the content store."""
