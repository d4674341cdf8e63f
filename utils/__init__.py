"""CLI helpers: input validation and output formatting."""
