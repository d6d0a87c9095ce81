"""Screenshot, tile and frame capture."""
