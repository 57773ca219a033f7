"""Blog repository for metadata store operations."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import wraps
from logging import getLogger
from typing import Any, Literal

from sqlalchemy import String, Text, cast, delete, desc, func, or_, select, update
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from app.configs import file_logger
from app.db.database import json_serializer
from app.errors import ConflictError, MetadataStoreError, NotFoundError
from app.models.blog import BlogDB

logger = file_logger(getLogger(__name__))

type BlogOrder = Literal["latest", "popular"]

# Scalar columns an update may touch; keys and counters included
UPDATABLE_FIELDS = frozenset(
    {"title", "tags", "content_key", "cover_key", "read_time", "views", "likes", "deleted_at"},
)


@dataclass(frozen=True, slots=True)
class BlogFilter:
    """List filter: ``tags`` is a subset match, ``search`` a full-text query."""

    tags: list[str] = field(default_factory=list)
    search: str | None = None


def _now() -> datetime:
    return datetime.now(tz=UTC)


def map_db_errors[**P, R](func_: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Translate SQLAlchemy failures into the application's error taxonomy."""

    @wraps(func_)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await func_(*args, **kwargs)
        except IntegrityError as e:
            error_msg = str(e.orig) if e.orig else str(e)
            logger.warning(f"Integrity error in {func_.__name__}: {error_msg}")
            raise ConflictError(detail=f"Database integrity error: {error_msg}") from e
        except (OperationalError, InterfaceError, DBAPIError) as e:
            logger.exception(f"Metadata store failure in {func_.__name__}")
            raise MetadataStoreError(operation=func_.__name__) from e

    return wrapper


def visible() -> tuple[ColumnElement[bool], ...]:
    """Rows readers may see: not soft-deleted and past the provisional state."""
    return (
        BlogDB.deleted_at.is_(None),  # type: ignore[union-attr]
        BlogDB.content_key.is_not(None),  # type: ignore[union-attr]
    )


class BlogRepository:
    """
    Repository for Blog metadata.

    This class implements the repository pattern for Blog entities. Every
    method works inside the caller's session; committing is the caller's job
    (see ``app.db.transaction``).
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize repository with database session.

        Args:
            session: Async database session
        """
        self.session = session

    @property
    def dialect(self) -> str:
        return self.session.get_bind().dialect.name

    @map_db_errors
    async def insert(
        self,
        title: str,
        tags: list[str],
        read_time: int | None = None,
    ) -> BlogDB:
        """
        Insert a provisional blog row (no blob keys yet).

        Args:
            title: Blog title
            tags: Ordered tags
            read_time: Reading time in minutes, if known

        Returns:
            BlogDB: The new row with its system-assigned id
        """
        now = _now()
        db_blog = BlogDB(
            title=title,
            tags=tags,
            read_time=read_time,
            created_at=now,
            updated_at=now,
        )
        self.session.add(db_blog)
        await self.session.flush()
        await self.session.refresh(db_blog)
        return db_blog

    @map_db_errors
    async def get(self, blog_id: int, *, include_deleted: bool = False) -> BlogDB:
        """
        Get blog by ID.

        Args:
            blog_id: Blog id
            include_deleted: Also return soft-deleted and provisional rows

        Returns:
            BlogDB: The blog

        Raises:
            NotFoundError: If the blog does not exist or is not visible
        """
        query = select(BlogDB).where(BlogDB.id == blog_id)
        if not include_deleted:
            query = query.where(*visible())
        result = await self.session.execute(query)
        db_blog = result.scalar_one_or_none()
        if db_blog is None:
            raise NotFoundError.blog(blog_id)
        return db_blog

    def _filters(self, blog_filter: BlogFilter) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = list(visible())
        if blog_filter.tags:
            conditions.extend(self._tag_conditions(blog_filter.tags))
        if blog_filter.search:
            conditions.append(self._search_condition(blog_filter.search))
        return conditions

    def _tag_conditions(self, tags: list[str]) -> list[ColumnElement[bool]]:
        """Subset match: every requested tag must be present on the blog."""
        if self.dialect == "postgresql":
            return [BlogDB.tags.cast(JSONB).contains(tags)]  # type: ignore[attr-defined]
        tags_text = cast(BlogDB.tags, String)
        # Needles are encoded exactly like the stored column text
        return [func.instr(tags_text, json_serializer(tag)) > 0 for tag in tags]

    def _search_condition(self, query: str) -> ColumnElement[bool]:
        if self.dialect == "postgresql":
            document = func.to_tsvector(
                "english",
                BlogDB.title + " " + cast(BlogDB.tags, Text),
            )
            return document.op("@@")(func.plainto_tsquery("english", query))
        needle = query.lower()
        return or_(
            func.lower(BlogDB.title).contains(needle, autoescape=True),
            func.lower(cast(BlogDB.tags, String)).contains(needle, autoescape=True),
        )

    @map_db_errors
    async def list(
        self,
        blog_filter: BlogFilter,
        page: int,
        page_size: int,
        order: BlogOrder = "latest",
    ) -> tuple[list[BlogDB], int]:
        """
        List visible blogs with pagination.

        Args:
            blog_filter: Tag subset and full-text filters
            page: 1-based page number
            page_size: Page size in [1, 100]
            order: ``latest`` (created desc) or ``popular`` (views desc)

        Returns:
            tuple[list[BlogDB], int]: The page and the total matching rows
        """
        conditions = self._filters(blog_filter)

        total_result = await self.session.execute(
            select(func.count()).select_from(BlogDB).where(*conditions),
        )
        total = total_result.scalar_one()

        ordering = (
            (desc(BlogDB.views), desc(BlogDB.created_at), desc(BlogDB.id))
            if order == "popular"
            else (desc(BlogDB.created_at), desc(BlogDB.id))
        )
        query = (
            select(BlogDB)
            .where(*conditions)
            .order_by(*ordering)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all()), total

    @map_db_errors
    async def update(
        self,
        blog_id: int,
        fields: dict[str, Any],
        *,
        include_deleted: bool = False,
    ) -> BlogDB:
        """
        Apply a partial update and refresh ``updated_at``.

        Args:
            blog_id: Blog id
            fields: Column values to set; keys outside UPDATABLE_FIELDS are rejected
            include_deleted: Allow updating provisional or soft-deleted rows

        Returns:
            BlogDB: Updated blog

        Raises:
            NotFoundError: If the blog does not exist or is not visible
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            msg = f"Cannot update fields: {sorted(unknown)}"
            raise ValueError(msg)

        db_blog = await self.get(blog_id, include_deleted=include_deleted)
        for key, value in fields.items():
            setattr(db_blog, key, value)
        db_blog.updated_at = _now()

        await self.session.flush()
        await self.session.refresh(db_blog)
        return db_blog

    @map_db_errors
    async def increment_view(self, blog_id: int) -> int:
        """
        Atomically increment the view counter in the store.

        A single ``UPDATE ... SET views = views + 1`` so concurrent readers
        never lose increments.

        Returns:
            int: The new view count

        Raises:
            NotFoundError: If the blog does not exist or is not visible
        """
        statement = (
            update(BlogDB)
            .where(BlogDB.id == blog_id, *visible())
            .values(views=BlogDB.views + 1)
            .returning(BlogDB.views)
        )
        result = await self.session.execute(statement)
        views = result.scalar_one_or_none()
        if views is None:
            raise NotFoundError.blog(blog_id)
        return views

    @map_db_errors
    async def soft_delete(self, blog_id: int) -> BlogDB:
        """
        Mark a visible blog as deleted; its blobs are untouched.

        Raises:
            NotFoundError: If the blog does not exist or is already deleted
        """
        db_blog = await self.get(blog_id)
        now = _now()
        db_blog.deleted_at = now
        db_blog.updated_at = now
        await self.session.flush()
        await self.session.refresh(db_blog)
        return db_blog

    @map_db_errors
    async def restore(self, blog_id: int) -> BlogDB:
        """
        Clear ``deleted_at`` on a soft-deleted blog.

        Raises:
            NotFoundError: If the blog does not exist or was never finalized
        """
        db_blog = await self.get(blog_id, include_deleted=True)
        if db_blog.content_key is None:
            raise NotFoundError.blog(blog_id)
        db_blog.deleted_at = None
        db_blog.updated_at = _now()
        await self.session.flush()
        await self.session.refresh(db_blog)
        return db_blog

    @map_db_errors
    async def hard_delete(self, blog_id: int) -> None:
        """
        Physically remove the row, whatever its state.

        Raises:
            NotFoundError: If no row has this id
        """
        result = await self.session.execute(
            delete(BlogDB).where(BlogDB.id == blog_id),
        )
        if result.rowcount == 0:
            raise NotFoundError.blog(blog_id)
