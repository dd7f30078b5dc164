"""
Vidtube View Pipeline — a small composable query builder for read models.

Every projection is assembled from the same five stages:

    filter   → WHERE clauses (visibility first, then caller filters)
    join     → bring in an independently owned collection (owner, playlist …)
    compute  → derived columns (edge counts, actor membership flags, sums)
    sort     → ORDER BY with a stable id tie-breaker
    paginate → OFFSET/LIMIT, applied only at execution time, after sort

Stages return a new pipeline, so a base pipeline can be shared between a
count query and a page query without the two interfering.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Generic, List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from vidtube.core.config import get_settings

settings = get_settings()

T = TypeVar("T")


# ═══════════════════════════════════════════════════════════════════════
# Paging
# ═══════════════════════════════════════════════════════════════════════

def _positive_int(raw: Any, default: int) -> int:
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @classmethod
    def parse(cls, page: Any = None, limit: Any = None) -> "PageRequest":
        """Lenient parsing: anything non-numeric or non-positive falls back to defaults."""
        parsed_limit = _positive_int(limit, settings.default_page_size)
        return cls(
            page=_positive_int(page, settings.default_page),
            limit=min(parsed_limit, settings.max_page_size),
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class PageResult(Generic[T]):
    docs: List[T]
    total_docs: int
    request: PageRequest

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total_docs / self.request.limit))

    def map(self, fn) -> "PageResult":
        return PageResult(docs=[fn(d) for d in self.docs], total_docs=self.total_docs, request=self.request)

    def meta(self) -> dict:
        page = self.request.page
        has_prev = page > 1
        has_next = page < self.total_pages
        return {
            "total_docs": self.total_docs,
            "limit": self.request.limit,
            "page": page,
            "total_pages": self.total_pages,
            "paging_counter": self.request.offset + 1,
            "has_prev_page": has_prev,
            "has_next_page": has_next,
            "prev_page": page - 1 if has_prev else None,
            "next_page": page + 1 if has_next else None,
        }


# ═══════════════════════════════════════════════════════════════════════
# Pipeline
# ═══════════════════════════════════════════════════════════════════════

class ViewPipeline:
    """Immutable wrapper around a ``Select`` exposing the view stages."""

    def __init__(self, stmt: Select, page: Optional[PageRequest] = None):
        self._stmt = stmt
        self._page = page

    @classmethod
    def over(cls, *entities) -> "ViewPipeline":
        return cls(select(*entities))

    def _with(self, stmt: Select, page: Optional[PageRequest] = None) -> "ViewPipeline":
        return ViewPipeline(stmt, page if page is not None else self._page)

    # ── Stages ───────────────────────────────────────────────────────────

    def filter(self, *clauses) -> "ViewPipeline":
        return self._with(self._stmt.where(*clauses))

    def join(self, target, onclause, *, outer: bool = False) -> "ViewPipeline":
        return self._with(self._stmt.join(target, onclause, isouter=outer))

    def compute(self, **fields) -> "ViewPipeline":
        """Add labelled derived columns; keyword name becomes the row key."""
        columns = [expr.label(name) for name, expr in fields.items()]
        return self._with(self._stmt.add_columns(*columns))

    def sort(self, *order_by) -> "ViewPipeline":
        return self._with(self._stmt.order_by(*order_by))

    def paginate(self, page: PageRequest) -> "ViewPipeline":
        return self._with(self._stmt, page)

    # ── Execution ────────────────────────────────────────────────────────

    @property
    def statement(self) -> Select:
        stmt = self._stmt
        if self._page is not None:
            stmt = stmt.offset(self._page.offset).limit(self._page.limit)
        return stmt

    async def all(self, db: AsyncSession) -> Sequence[Row]:
        result = await db.execute(self.statement)
        return result.all()

    async def first(self, db: AsyncSession) -> Optional[Row]:
        result = await db.execute(self.statement.limit(1))
        return result.first()

    async def count(self, db: AsyncSession) -> int:
        inner = self._stmt.order_by(None).subquery()
        return await db.scalar(select(func.count()).select_from(inner)) or 0

    async def page(self, db: AsyncSession, request: PageRequest) -> PageResult[Row]:
        total = await self.count(db)
        rows = await self.paginate(request).all(db)
        return PageResult(docs=list(rows), total_docs=total, request=request)


def split_sort(sort_by: Optional[str], sort_type: Optional[str], allowed: dict, default: Tuple[str, str]):
    """Resolve a client sort spec to (column, descending)."""
    key, direction = default
    if sort_by:
        key = sort_by
        direction = sort_type or direction
    column = allowed.get(key)
    if column is None:
        return None, False
    return column, str(direction).lower() != "asc"
