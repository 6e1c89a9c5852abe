"""Pre-flight checks for required programs and certificates."""
