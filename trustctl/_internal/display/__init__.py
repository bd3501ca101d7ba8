"""Internal display implementation."""
