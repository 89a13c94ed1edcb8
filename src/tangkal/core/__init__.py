"""Core scan pipeline: content analysis and dependency extraction."""
