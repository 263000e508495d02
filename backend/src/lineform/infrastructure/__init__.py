"""Infrastructure package - Database models and session management."""
