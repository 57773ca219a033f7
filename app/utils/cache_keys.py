"""
Cache key builders for the blog namespace.

Routes and the lifecycle service share these so that every mutation can
invalidate the same keys that reads populate.
"""

BLOGS_NAMESPACE = "blogs"


def blog_list_key(page: int, limit: int, tags: list[str], search: str | None) -> str:
    """Generate cache key for a page of the blog list."""
    return f"list:{page}:{limit}:{','.join(tags) or 'all'}:{search or ''}"


def blog_search_key(query: str, page: int, limit: int) -> str:
    return f"search:{query.lower()}:{page}:{limit}"


def blog_feed_key(feed: str, limit: int) -> str:
    return f"feed:{feed}:{limit}"


def blog_content_key(blog_id: int) -> str:
    """Generate cache key for a blog's content body."""
    return f"content:{blog_id}"


# Kept outside BLOGS_NAMESPACE so clearing the namespace leaves it in place
BLOGS_STATE_NAMESPACE = "blogs-state"
GENERATION_KEY = "generation"
INITIAL_GENERATION = "0"


def versioned_key(key: str, generation: str) -> str:
    """
    Prefix ``key`` with the namespace generation.

    Invalidation replaces the generation, so a page loaded before a write
    and stored after it lands under a key no reader asks for again.
    """
    return f"g{generation}:{key}"
