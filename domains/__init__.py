"""Domain modules for the Family Plan reminder service."""
