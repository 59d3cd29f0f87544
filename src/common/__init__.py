"""Shared helpers: HTTP, logging, subprocess execution."""
