"""Admin API, authentication, and the event system."""
