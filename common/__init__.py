"""Shared logging, console output and configuration helpers."""
