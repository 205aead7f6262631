"""Rememmo CLI subcommands."""
