"""Command-line interface for Tangkal."""
