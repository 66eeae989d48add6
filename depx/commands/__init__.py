"""Subcommand implementations for depx."""
