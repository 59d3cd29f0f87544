"""Node.js backend (npm)."""
