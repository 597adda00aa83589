"""Shared utilities: geo primitives, logging, result persistence."""
