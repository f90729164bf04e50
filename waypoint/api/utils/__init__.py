"""API utility modules."""
