"""npm registry access."""
