"""trustctl plugins."""
