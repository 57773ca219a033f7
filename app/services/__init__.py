from app.services.blog import BlogService
from app.services.content import (
    ProcessedContent,
    compute_read_time,
    excerpt,
    html_to_text,
    prepare_content,
    render_markdown,
    sanitize,
)

__all__ = [
    "BlogService",
    "ProcessedContent",
    "compute_read_time",
    "excerpt",
    "html_to_text",
    "prepare_content",
    "render_markdown",
    "sanitize",
]
