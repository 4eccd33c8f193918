"""Rainbow likelihood prediction service."""
