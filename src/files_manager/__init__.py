"""Per-user file store with background image thumbnails."""
