"""HTTP front end - FastAPI application."""
