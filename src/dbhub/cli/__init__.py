"""Command-line interface for dbhub."""
