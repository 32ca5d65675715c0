"""Command line interface for the podcast catalog."""
