"""API package - FastAPI routes and schemas."""
