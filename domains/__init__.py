"""Domain modules for the Remind Me bot."""
