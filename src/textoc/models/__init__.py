"""Domain and database models for textoc."""
