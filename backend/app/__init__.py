"""FastAPI application package for the branch terminal console."""
