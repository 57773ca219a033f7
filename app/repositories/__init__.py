"""Repository layer for database operations."""

from app.repositories.blog import BlogFilter, BlogOrder, BlogRepository

__all__ = ["BlogFilter", "BlogOrder", "BlogRepository"]
