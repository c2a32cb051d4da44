"""Application entrypoints for Reverie."""
