"""Command line interface for tick."""
