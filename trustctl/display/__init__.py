"""trustctl display utilities."""
