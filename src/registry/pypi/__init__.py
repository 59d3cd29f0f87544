"""PyPI registry access."""
