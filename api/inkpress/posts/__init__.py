"""Posts and their derived fields."""
