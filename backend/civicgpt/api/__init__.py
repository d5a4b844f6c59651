"""API routes for CivicGPT."""
from .routes import router

__all__ = ["router"]
