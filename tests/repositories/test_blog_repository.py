"""Tests for BlogRepository against SQLite."""

from asyncio import gather

import pytest

from app.context import ServiceContext
from app.db import transaction
from app.errors import NotFoundError
from app.repositories import BlogFilter, BlogRepository


async def insert_visible(context: ServiceContext, title: str, tags: list[str] | None = None) -> int:
    async with transaction(context.sessions) as session:
        repo = BlogRepository(session)
        blog = await repo.insert(title, tags or [], 1)
        assert blog.id is not None
        await repo.update(blog.id, {"content_key": f"blogs/{blog.id}/content.html"}, include_deleted=True)
        return blog.id


class TestBlogRepository:
    @pytest.mark.asyncio
    async def test_provisional_rows_are_invisible(self, context: ServiceContext) -> None:
        """A row without a content key cannot be read through the public path."""
        async with transaction(context.sessions) as session:
            blog = await BlogRepository(session).insert("draft", [], None)
        assert blog.id is not None

        async with transaction(context.sessions) as session:
            repo = BlogRepository(session)
            with pytest.raises(NotFoundError):
                await repo.get(blog.id)
            assert (await repo.get(blog.id, include_deleted=True)).title == "draft"
            rows, total = await repo.list(BlogFilter(), 1, 10)
        assert rows == []
        assert total == 0

    @pytest.mark.asyncio
    async def test_ids_are_never_reused(self, context: ServiceContext) -> None:
        """A permanently deleted id is not handed out again."""
        first = await insert_visible(context, "one")
        second = await insert_visible(context, "two")
        async with transaction(context.sessions) as session:
            await BlogRepository(session).hard_delete(second)
        third = await insert_visible(context, "three")
        assert (first, second, third) == (1, 2, 3)

    @pytest.mark.asyncio
    async def test_tag_subset_filter(self, context: ServiceContext) -> None:
        """Every requested tag must be present."""
        await insert_visible(context, "both", ["travel", "yoga"])
        await insert_visible(context, "travel only", ["travel"])
        await insert_visible(context, "similar", ["travelling"])

        async with transaction(context.sessions) as session:
            repo = BlogRepository(session)
            rows, total = await repo.list(BlogFilter(tags=["travel", "yoga"]), 1, 10)
            assert [row.title for row in rows] == ["both"]
            assert total == 1
            rows, total = await repo.list(BlogFilter(tags=["travel"]), 1, 10)
            assert sorted(row.title for row in rows) == ["both", "travel only"]

    @pytest.mark.asyncio
    async def test_non_ascii_tags_match(self, context: ServiceContext) -> None:
        """Tags outside ASCII filter the same way as plain ones."""
        await insert_visible(context, "cafes", ["café", "योग"])
        await insert_visible(context, "plain", ["cafe"])

        async with transaction(context.sessions) as session:
            repo = BlogRepository(session)
            rows, total = await repo.list(BlogFilter(tags=["café"]), 1, 10)
            assert [row.title for row in rows] == ["cafes"]
            assert total == 1
            rows, _ = await repo.list(BlogFilter(tags=["योग", "café"]), 1, 10)
            assert [row.title for row in rows] == ["cafes"]
            stored = await repo.get(rows[0].id)
            assert stored.tags == ["café", "योग"]

    @pytest.mark.asyncio
    async def test_search_matches_title_and_tags(self, context: ServiceContext) -> None:
        await insert_visible(context, "Stillness in Rishikesh", ["yoga"])
        await insert_visible(context, "Street food", ["Varanasi"])

        async with transaction(context.sessions) as session:
            repo = BlogRepository(session)
            rows, _ = await repo.list(BlogFilter(search="rishikesh"), 1, 10)
            assert [row.title for row in rows] == ["Stillness in Rishikesh"]
            rows, _ = await repo.list(BlogFilter(search="varanasi"), 1, 10)
            assert [row.title for row in rows] == ["Street food"]

    @pytest.mark.asyncio
    async def test_pagination_newest_first(self, context: ServiceContext) -> None:
        for i in range(5):
            await insert_visible(context, f"post {i}")
        async with transaction(context.sessions) as session:
            rows, total = await BlogRepository(session).list(BlogFilter(), 2, 2)
        assert total == 5
        assert [row.title for row in rows] == ["post 2", "post 1"]

    @pytest.mark.asyncio
    async def test_increment_view_is_atomic(self, context: ServiceContext) -> None:
        """Concurrent increments are all counted."""
        blog_id = await insert_visible(context, "popular")

        async def bump() -> int:
            async with transaction(context.sessions) as session:
                return await BlogRepository(session).increment_view(blog_id)

        await gather(*(bump() for _ in range(10)))
        async with transaction(context.sessions) as session:
            assert (await BlogRepository(session).get(blog_id)).views == 10

    @pytest.mark.asyncio
    async def test_soft_delete_and_restore(self, context: ServiceContext) -> None:
        blog_id = await insert_visible(context, "hidden")
        async with transaction(context.sessions) as session:
            deleted = await BlogRepository(session).soft_delete(blog_id)
        assert deleted.deleted_at is not None

        async with transaction(context.sessions) as session:
            repo = BlogRepository(session)
            with pytest.raises(NotFoundError):
                await repo.get(blog_id)
            with pytest.raises(NotFoundError):
                await repo.soft_delete(blog_id)
            with pytest.raises(NotFoundError):
                await repo.increment_view(blog_id)

        async with transaction(context.sessions) as session:
            restored = await BlogRepository(session).restore(blog_id)
        assert restored.deleted_at is None

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, context: ServiceContext) -> None:
        blog_id = await insert_visible(context, "x")
        async with transaction(context.sessions) as session:
            with pytest.raises(ValueError, match="id"):
                await BlogRepository(session).update(blog_id, {"id": 99})

    @pytest.mark.asyncio
    async def test_hard_delete_unknown(self, context: ServiceContext) -> None:
        async with transaction(context.sessions) as session:
            with pytest.raises(NotFoundError):
                await BlogRepository(session).hard_delete(404)
