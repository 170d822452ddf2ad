"""Pagination planner for search results.

Validates the ``_count`` / ``_offset`` control parameters before any query
runs, applies a stable ordering with LIMIT/OFFSET to the page query, and
builds the navigation links of a searchset Bundle. Every filter parameter of
the original request is re-emitted on each link, in its original order and
multiplicity, percent-encoded as UTF-8 per RFC 3986.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from urllib.parse import quote, urlencode

from sqlalchemy import Select

from labflow.core.config import settings
from labflow.core.database import ResourceRecordMixin
from labflow.core.errors import InvalidParameterError
from labflow.schemas.base import LinkRelation
from labflow.schemas.bundle import BundleLink

logger = logging.getLogger(__name__)

COUNT_PARAM = "_count"
OFFSET_PARAM = "_offset"
CONTROL_PARAMS = (COUNT_PARAM, OFFSET_PARAM)


@dataclass(frozen=True)
class PageRequest:
    """Validated page bounds."""

    count: int
    offset: int


class PaginationPlanner:
    """Plans LIMIT/OFFSET pages and the links between them.

    Usage:
        planner = PaginationPlanner()
        page, filters = planner.plan(params)
        stmt = planner.paginate(select(Model).where(...), Model, page)
        links = planner.build_links(base_url, filters, page, total)
    """

    def __init__(
        self,
        default_count: int | None = None,
        max_count: int | None = None,
    ) -> None:
        self.default_count = default_count or settings.default_page_size
        self.max_count = max_count or settings.max_page_size

    def plan(
        self, params: Sequence[tuple[str, str]]
    ) -> tuple[PageRequest, list[tuple[str, str]]]:
        """Split paging controls from filters and validate them.

        The last occurrence of a repeated control parameter wins.

        Returns:
            The validated page and the remaining filter parameters in order

        Raises:
            InvalidParameterError: If ``_count`` or ``_offset`` is out of range
        """
        count = self.default_count
        offset = 0
        filters: list[tuple[str, str]] = []

        for name, value in params:
            if name == COUNT_PARAM:
                if value.strip():
                    count = self._parse_int(name, value)
            elif name == OFFSET_PARAM:
                if value.strip():
                    offset = self._parse_int(name, value)
            else:
                filters.append((name, value))

        if count < 0 or count > self.max_count:
            logger.warning(f"Rejected page size {count}")
            raise InvalidParameterError(
                COUNT_PARAM,
                f"Parameter _count must be between 0 and {self.max_count}",
            )
        if offset < 0:
            logger.warning(f"Rejected page offset {offset}")
            raise InvalidParameterError(OFFSET_PARAM, "Parameter _offset must be non-negative")

        return PageRequest(count=count, offset=offset), filters

    @staticmethod
    def _parse_int(name: str, value: str) -> int:
        try:
            return int(value.strip())
        except ValueError:
            raise InvalidParameterError(
                name, f"Parameter {name} must be an integer, got '{value}'"
            ) from None

    @staticmethod
    def paginate(stmt: Select, model: type[ResourceRecordMixin], page: PageRequest) -> Select:
        """Apply the stable result ordering and page bounds to a query."""
        return (
            stmt.order_by(model.last_updated.desc(), model.id.asc())
            .limit(page.count)
            .offset(page.offset)
        )

    @staticmethod
    def page_url(
        base_url: str,
        filters: Sequence[tuple[str, str]],
        count: int,
        offset: int,
    ) -> str:
        """URL of one page: the filters followed by ``_count`` and ``_offset``."""
        query = urlencode(
            [*filters, (COUNT_PARAM, str(count)), (OFFSET_PARAM, str(offset))],
            safe="/:",
            quote_via=quote,
        )
        return f"{base_url}?{query}"

    def build_links(
        self,
        base_url: str,
        filters: Sequence[tuple[str, str]],
        page: PageRequest,
        total: int,
    ) -> list[BundleLink]:
        """Navigation links for the page.

        ``self`` and ``first`` are always present; ``previous`` only when the
        page does not start at zero and ``next`` only when more matches follow.
        A zero-size page asks for the total alone and gets no navigation.
        """
        count, offset = page.count, page.offset
        links = [
            BundleLink(relation=LinkRelation.SELF, url=self.page_url(base_url, filters, count, offset)),
            BundleLink(relation=LinkRelation.FIRST, url=self.page_url(base_url, filters, count, 0)),
        ]
        if count == 0:
            return links
        if offset > 0:
            links.append(
                BundleLink(
                    relation=LinkRelation.PREVIOUS,
                    url=self.page_url(base_url, filters, count, max(offset - count, 0)),
                )
            )
        if offset + count < total:
            links.append(
                BundleLink(
                    relation=LinkRelation.NEXT,
                    url=self.page_url(base_url, filters, count, offset + count),
                )
            )
        return links
