"""All router modules for the application."""

from app.routers import analytics
from app.routers import clicks

__all__ = [
    "analytics",
    "clicks",
]
