"""Configuration, database, security, logging and error types."""
