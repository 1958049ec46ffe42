"""
FastAPI routers for the render service.
"""

from app.routers import health, render, templates

__all__ = ["health", "render", "templates"]
