"""Service layer: sync coordination and workspace state."""
