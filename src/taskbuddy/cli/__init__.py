"""Command-line front-end: composition root, slash commands and entry point."""
