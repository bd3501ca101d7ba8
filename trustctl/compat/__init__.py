"""Compatibility layer for filesystem security."""
