"""trustctl DNS provider plugins."""
