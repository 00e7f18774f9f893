"""Administration endpoints and dashboard aggregates."""
