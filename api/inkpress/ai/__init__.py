"""AI text generation collaborator."""
