"""Console recording."""
