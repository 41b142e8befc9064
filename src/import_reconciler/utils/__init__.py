"""Shared utilities: logging, dates and decimal amounts."""
