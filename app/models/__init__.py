"""Database models for the application."""

from app.models.blog import BlogDB

__all__ = ["BlogDB"]
