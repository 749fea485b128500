"""Application framework layered on the insertion core."""
