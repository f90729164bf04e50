"""Response envelope schemas."""
