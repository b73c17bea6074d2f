"""Background workers deriving image thumbnails from queued jobs."""
