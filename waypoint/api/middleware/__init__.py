"""Process-wide middleware and the global error handler."""
