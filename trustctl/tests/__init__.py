"""Utilities for testing trustctl."""
