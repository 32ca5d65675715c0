"""Web API for the podcast catalog."""
