"""
Blog lifecycle service.

Coordinates the metadata store and the blob store, which share no
transaction. Every flow runs its steps in a fixed order and carries one
compensating action, so a failure part-way through never leaves a visible
row pointing at a missing blob:

- create: provisional row -> content blob -> cover blob -> key commit;
  any failure after the insert removes the blobs and the row.
- update: existing row -> blob overwrite -> metadata update.
- soft delete: timestamp write only; blobs stay.
- permanent delete: blobs by prefix -> row; a blob failure aborts before
  the row is touched.

View counting runs in background tasks that never affect the read response.
"""

from asyncio import Task, create_task, shield, wait
from asyncio import timeout as asyncio_timeout
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from secrets import token_hex
from typing import Any

from app.db.database import SessionMaker, transaction
from app.errors import (
    BASE_EXCEPTION,
    BaseAppError,
    BlobNotFoundError,
    MetadataStoreError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.managers.cache_manager import CACHE_ERRORS, CacheManager
from app.managers.url_signer import DEFAULT_TTL_SECONDS, UrlSigner
from app.models import BlogDB
from app.monitoring import get_logger
from app.repositories import BlogFilter, BlogOrder, BlogRepository
from app.schemas.blog import (
    BlogChanges,
    BlogContentResponse,
    BlogDraft,
    BlogPage,
    BlogResponse,
    ContentBody,
    Pagination,
    UploadedFile,
)
from app.services.content import excerpt, html_to_text, prepare_content
from app.services.storage import (
    CONTENT_TYPE_HTML,
    BlobStore,
    blog_prefix,
    content_key,
    cover_extension,
    cover_key,
)
from app.utils.cache_keys import (
    BLOGS_NAMESPACE,
    BLOGS_STATE_NAMESPACE,
    GENERATION_KEY,
    INITIAL_GENERATION,
    blog_content_key,
    blog_feed_key,
    blog_list_key,
    blog_search_key,
    versioned_key,
)
from app.utils.helpers import total_pages

logger = get_logger(__name__)

type Loader = Callable[[], Awaitable[dict[str, Any]]]

ACCEPTED_COVERS = "JPEG, PNG, WebP, GIF or AVIF"

# Outlives every cached page, so an expired generation never revives one
GENERATION_TTL_SECONDS = 86400


def _require_cover_extension(cover: UploadedFile) -> str:
    extension = cover_extension(cover.content_type)
    if extension is None:
        mssg = f"Unsupported cover type '{cover.content_type}'. Use {ACCEPTED_COVERS}."
        raise ValidationError.for_field("cover", mssg)
    return extension


def _check_page(page: int, page_size: int, max_size: int) -> None:
    if page < 1:
        raise ValidationError.for_field("page", "Page must be 1 or greater")
    if not 1 <= page_size <= max_size:
        raise ValidationError.for_field("limit", f"Limit must be between 1 and {max_size}")


class BlogService:
    """
    Orchestrates blog reads and writes across the metadata and blob stores.

    One instance lives in the service context for the whole process; it owns
    no per-request state apart from the set of pending view-count tasks.
    """

    MAX_PAGE_SIZE = 100
    MAX_FEED_LIMIT = 50

    def __init__(
        self,
        sessions: SessionMaker,
        blobs: BlobStore,
        signer: UrlSigner,
        cache: CacheManager | None = None,
        *,
        metadata_timeout: float = 10.0,
        url_ttl: int = DEFAULT_TTL_SECONDS,
        cache_ttl: int | None = None,
    ) -> None:
        self._sessions = sessions
        self._blobs = blobs
        self._signer = signer
        self._cache = cache
        self._metadata_timeout = metadata_timeout
        self._url_ttl = url_ttl
        self._cache_ttl = cache_ttl
        self._pending_views: set[Task[None]] = set()

    # --- store plumbing ---

    @asynccontextmanager
    async def _metadata(self, operation: str) -> AsyncGenerator[BlogRepository]:
        """One bounded metadata transaction, committed on clean exit."""
        try:
            async with asyncio_timeout(self._metadata_timeout), transaction(self._sessions) as session:
                yield BlogRepository(session)
        except TimeoutError as e:
            logger.error("Metadata store call timed out", operation=operation, timeout=self._metadata_timeout)
            mssg = f"Metadata store {operation} timed out after {self._metadata_timeout}s"
            raise MetadataStoreError(mssg, operation=operation) from e

    async def _to_response(self, blog: BlogDB) -> BlogResponse:
        cover_url = await self._signer.sign(blog.cover_key, self._url_ttl) if blog.cover_key else None
        return BlogResponse.model_validate({**blog.model_dump(), "cover_url": cover_url})

    async def _generation(self, cache: CacheManager) -> str:
        current = await cache.get(GENERATION_KEY, namespace=BLOGS_STATE_NAMESPACE)
        return str(current) if current is not None else INITIAL_GENERATION

    async def _cached(self, key: str, loader: Loader) -> dict[str, Any]:
        if self._cache is None:
            return await loader()
        try:
            generation = await self._generation(self._cache)
        except CACHE_ERRORS as e:
            logger.warning("Cache generation unavailable, reading through", error=str(e))
            return await loader()
        return await self._cache.get_or_set(
            versioned_key(key, generation),
            loader,
            ttl=self._cache_ttl,
            namespace=BLOGS_NAMESPACE,
        )

    async def invalidate(self) -> None:
        """Drop every cached blog page and body; a cache outage is only logged."""
        if self._cache is None:
            return
        try:
            await self._cache.set(
                GENERATION_KEY,
                token_hex(8),
                ttl=GENERATION_TTL_SECONDS,
                namespace=BLOGS_STATE_NAMESPACE,
            )
            await self._cache.clear(BLOGS_NAMESPACE)
        except CACHE_ERRORS as e:
            logger.warning("Cache invalidation failed", error=str(e))

    # --- view counting ---

    def _schedule_view(self, blog_id: int) -> None:
        task = create_task(self._increment_view(blog_id), name=f"blog-view-{blog_id}")
        self._pending_views.add(task)
        task.add_done_callback(self._pending_views.discard)

    async def _increment_view(self, blog_id: int) -> None:
        try:
            async with self._metadata("increment_view") as repo:
                views = await repo.increment_view(blog_id)
        except (BaseAppError, *BASE_EXCEPTION) as e:
            # Never surfaced: the read it belongs to has already been answered
            logger.warning("View count increment failed", blog_id=blog_id, error=str(e))
            return
        logger.debug("View counted", blog_id=blog_id, views=views)

    @property
    def pending_views(self) -> int:
        return len(self._pending_views)

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for in-flight view increments; cancel what is still running after ``timeout``."""
        if not self._pending_views:
            return
        _, still_running = await wait(set(self._pending_views), timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("Cancelled pending view increments", count=len(still_running))

    # --- create ---

    async def create(
        self,
        draft: BlogDraft,
        content: UploadedFile,
        cover: UploadedFile | None = None,
    ) -> BlogResponse:
        """
        Create a blog and its blobs.

        The row is inserted first without keys (invisible to readers), then
        the blobs are written, then the keys are committed. If anything fails
        after the insert, including a timeout or cancellation, the blobs and
        the row are removed before the original error propagates.

        Raises:
            ValidationError: If the content or cover cannot be accepted
            StorageError: If a store call fails (after compensation)
        """
        processed = prepare_content(content.data, content.content_type, content.filename)
        extension = _require_cover_extension(cover) if cover is not None else None
        read_time = draft.read_time or processed.read_time or None

        async with self._metadata("insert") as repo:
            provisional = await repo.insert(draft.title, draft.tags, read_time)
        blog_id = provisional.id
        if blog_id is None:
            mssg = "Metadata store did not assign an id"
            raise MetadataStoreError(mssg, operation="insert")

        try:
            keys: dict[str, Any] = {"content_key": content_key(blog_id), "cover_key": None}
            await self._blobs.put(keys["content_key"], processed.html.encode("utf-8"), CONTENT_TYPE_HTML)
            if cover is not None and extension is not None:
                keys["cover_key"] = cover_key(blog_id, extension)
                await self._blobs.put(keys["cover_key"], cover.data, cover.content_type or "")
            async with self._metadata("finalize") as repo:
                blog = await repo.update(blog_id, keys, include_deleted=True)
        except BaseException as e:
            logger.error("Blog creation failed, compensating", blog_id=blog_id, error=str(e))
            await shield(self._compensate_create(blog_id))
            raise

        logger.info("Blog created", blog_id=blog_id, has_cover=blog.cover_key is not None)
        await self.invalidate()
        return await self._to_response(blog)

    async def _compensate_create(self, blog_id: int) -> None:
        """Remove everything a failed create may have written."""
        try:
            await self._blobs.delete_prefix(blog_prefix(blog_id))
        except StorageError as e:
            logger.error("Compensation could not remove blobs", blog_id=blog_id, error=str(e))
        try:
            async with self._metadata("compensate") as repo:
                await repo.hard_delete(blog_id)
        except (StorageError, NotFoundError) as e:
            logger.error("Compensation could not remove provisional row", blog_id=blog_id, error=str(e))
            return
        logger.info("Provisional blog removed", blog_id=blog_id)

    # --- reads ---

    async def get(self, blog_id: int) -> BlogResponse:
        """
        Read one visible blog and count the view in the background.

        The returned ``views`` includes this read's own increment.

        Raises:
            NotFoundError: If the blog is unknown, provisional or soft-deleted
        """
        async with self._metadata("get") as repo:
            blog = await repo.get(blog_id)
        response = await self._to_response(blog)
        self._schedule_view(blog_id)
        return response.model_copy(update={"views": blog.views + 1})

    async def _content_body(self, blog_id: int, key: str) -> ContentBody:

        async def load() -> dict[str, Any]:
            try:
                raw = await self._blobs.get(key)
            except BlobNotFoundError as e:
                logger.error("Visible blog has no content blob", blog_id=blog_id, key=key)
                mssg = f"Content for blog {blog_id} is missing from the blob store"
                raise StorageError(mssg, operation="get", key=key) from e
            html = raw.decode("utf-8")
            text = html_to_text(html)
            return ContentBody(html=html, excerpt=excerpt(text), word_count=len(text.split())).model_dump()

        return ContentBody.model_validate(await self._cached(blog_content_key(blog_id), load))

    async def get_with_content(self, blog_id: int) -> BlogContentResponse:
        """
        Read one visible blog with its stored HTML, returned verbatim.

        Raises:
            NotFoundError: If the blog is not visible
            StorageError: If the content blob cannot be read
        """
        async with self._metadata("get") as repo:
            blog = await repo.get(blog_id)
        body = await self._content_body(blog_id, blog.content_key or content_key(blog_id))
        response = await self._to_response(blog)
        self._schedule_view(blog_id)
        return BlogContentResponse(
            **response.model_dump(by_alias=False, exclude={"views"}),
            views=blog.views + 1,
            content=body.html,
            excerpt=body.excerpt,
            word_count=body.word_count,
        )

    async def _page(
        self,
        blog_filter: BlogFilter,
        page: int,
        page_size: int,
        order: BlogOrder = "latest",
    ) -> dict[str, Any]:
        async with self._metadata("list") as repo:
            rows, total = await repo.list(blog_filter, page, page_size, order)
        pages = total_pages(total, page_size)
        result = BlogPage(
            items=[await self._to_response(row) for row in rows],
            pagination=Pagination(
                total=total,
                page=page,
                limit=page_size,
                total_pages=pages,
                has_more=page < pages,
            ),
        )
        return result.model_dump(mode="json")

    async def _feed(self, order: BlogOrder, limit: int) -> list[BlogResponse]:
        if not 1 <= limit <= self.MAX_FEED_LIMIT:
            raise ValidationError.for_field("limit", f"Limit must be between 1 and {self.MAX_FEED_LIMIT}")
        cached = await self._cached(
            blog_feed_key(order, limit),
            lambda: self._page(BlogFilter(), 1, limit, order),
        )
        return BlogPage.model_validate(cached).items

    async def latest(self, limit: int = 10) -> list[BlogResponse]:
        return await self._feed("latest", limit)

    async def popular(self, limit: int = 10) -> list[BlogResponse]:
        return await self._feed("popular", limit)

    async def list(
        self,
        page: int = 1,
        page_size: int = 10,
        tags: list[str] | None = None,
        search: str | None = None,
    ) -> BlogPage:
        """Visible blogs, newest first, optionally filtered by a tag subset and a search query."""
        _check_page(page, page_size, self.MAX_PAGE_SIZE)
        blog_filter = BlogFilter(tags=tags or [], search=search or None)
        key = blog_list_key(page, page_size, blog_filter.tags, blog_filter.search)
        return BlogPage.model_validate(
            await self._cached(key, lambda: self._page(blog_filter, page, page_size)),
        )

    async def search(self, query: str, page: int = 1, page_size: int = 10) -> BlogPage:
        query = query.strip()
        if not query:
            raise ValidationError.for_field("query", "Search query is required")
        _check_page(page, page_size, self.MAX_PAGE_SIZE)
        blog_filter = BlogFilter(search=query)
        return BlogPage.model_validate(
            await self._cached(
                blog_search_key(query, page, page_size),
                lambda: self._page(blog_filter, page, page_size),
            ),
        )

    # --- mutations ---

    async def update(
        self,
        blog_id: int,
        changes: BlogChanges,
        content: UploadedFile | None = None,
        cover: UploadedFile | None = None,
    ) -> BlogResponse:
        """
        Partially update a visible blog.

        Supplied blobs overwrite the existing deterministic keys before the
        metadata write; fields not supplied are left untouched. A cover with
        a new extension lands under a new key and the old object is removed
        once the metadata commit succeeds.

        Raises:
            ValidationError: If the content or cover cannot be accepted
            NotFoundError: If the blog is not visible
            StorageError: If a store call fails
        """
        processed = (
            prepare_content(content.data, content.content_type, content.filename)
            if content is not None
            else None
        )
        extension = _require_cover_extension(cover) if cover is not None else None

        async with self._metadata("get") as repo:
            current = await repo.get(blog_id)

        fields: dict[str, Any] = changes.provided()
        if processed is not None:
            await self._blobs.put(
                current.content_key or content_key(blog_id),
                processed.html.encode("utf-8"),
                CONTENT_TYPE_HTML,
            )
            if "read_time" not in fields:
                fields["read_time"] = processed.read_time or None

        stale_cover: str | None = None
        if cover is not None and extension is not None:
            new_cover_key = cover_key(blog_id, extension)
            await self._blobs.put(new_cover_key, cover.data, cover.content_type or "")
            if new_cover_key != current.cover_key:
                fields["cover_key"] = new_cover_key
                stale_cover = current.cover_key

        async with self._metadata("update") as repo:
            blog = await repo.update(blog_id, fields)

        if stale_cover is not None:
            try:
                await self._blobs.delete(stale_cover)
            except StorageError as e:
                logger.warning(
                    "Could not remove replaced cover", blog_id=blog_id, key=stale_cover, error=str(e)
                )

        logger.info("Blog updated", blog_id=blog_id, fields=sorted(fields))
        await self.invalidate()
        return await self._to_response(blog)

    async def soft_delete(self, blog_id: int) -> None:
        """
        Hide a blog from every read path; its blobs stay in place.

        Raises:
            NotFoundError: If the blog is not visible
        """
        async with self._metadata("soft_delete") as repo:
            await repo.soft_delete(blog_id)
        logger.info("Blog soft-deleted", blog_id=blog_id)
        await self.invalidate()

    async def restore(self, blog_id: int) -> BlogResponse:
        """Make a soft-deleted blog visible again."""
        async with self._metadata("restore") as repo:
            blog = await repo.restore(blog_id)
        logger.info("Blog restored", blog_id=blog_id)
        await self.invalidate()
        return await self._to_response(blog)

    async def hard_delete(self, blog_id: int) -> int:
        """
        Permanently remove a blog: blobs first, then the row.

        If removing the blobs fails the row is left untouched and the
        ``StorageError`` propagates; since prefix deletion is idempotent the
        call can simply be retried.

        Returns:
            int: Number of blobs removed

        Raises:
            NotFoundError: If no row has this id (soft-deleted rows included)
            StorageError: If the blobs or the row cannot be removed
        """
        async with self._metadata("get") as repo:
            await repo.get(blog_id, include_deleted=True)

        removed = await self._blobs.delete_prefix(blog_prefix(blog_id))
        async with self._metadata("hard_delete") as repo:
            await repo.hard_delete(blog_id)

        logger.info("Blog permanently deleted", blog_id=blog_id, blobs_removed=removed)
        await self.invalidate()
        return removed
