"""Registry clients and index snapshots."""
