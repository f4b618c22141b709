"""Option resolution, validation and confirmation prompts."""
