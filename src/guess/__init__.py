"""Dependency inference from imported module names."""
