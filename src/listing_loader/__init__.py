"""Chunked, restartable loader for scraped real-estate listings."""
