"""trustctl tests."""
