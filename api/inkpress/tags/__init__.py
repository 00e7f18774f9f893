"""Tags attached to posts."""
