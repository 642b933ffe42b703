"""Command-line interface for contractlint."""
