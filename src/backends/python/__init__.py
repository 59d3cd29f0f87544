"""Python backend (Poetry)."""
