#!/usr/bin/env python3
"""Result assembler: total count, sort resolution, pagination and envelope"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.sql.elements import ColumnElement

from apps.events.models import Event, EventPrice
from apps.events.schemas.filters import SearchFilters, SortMode, SortOrder
from apps.events.schemas.predicates import OneOf
from apps.events.schemas.results import EventRow, PriceInfo, SearchMeta, SearchPage, VenueSummary
from apps.events.services.geo import ProximitySet
from apps.events.services.predicate_compiler import CompiledSearch
from apps.events.services.sql_lowering import SqlLowering

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class PageWindow:
    page: int
    page_size: int
    total_count: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def clamp_page(page: Optional[int], page_size: Optional[int], default_size: int = 20,
               max_size: int = MAX_PAGE_SIZE) -> Tuple[int, int]:
    """1-indexed page >= 1; page size within [1, max_size]."""
    page = max(int(page if page is not None else 1), 1)
    size = int(page_size) if page_size is not None else default_size
    return page, min(max(size, 1), max_size)


def paginate(total_count: int, page: int, page_size: int) -> PageWindow:
    """Flags come from the total count, not from how full the page is."""
    total_pages = math.ceil(total_count / page_size) if total_count else 0
    return PageWindow(
        page=page,
        page_size=page_size,
        total_count=total_count,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


class ResultAssembler:
    """Executes the compiled search against the store and builds the response envelope."""

    def __init__(self, lowering: Optional[SqlLowering] = None, default_page_size: int = 20,
                 max_page_size: int = MAX_PAGE_SIZE):
        self.lowering = lowering or SqlLowering()
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def assemble(
        self,
        db: Session,
        filters: SearchFilters,
        compiled: CompiledSearch,
        proximity: Optional[ProximitySet] = None,
    ) -> SearchPage:
        where = self.lowering.lower(compiled.facets)
        score_expr = None
        if compiled.score is not None:
            # one expression object for filter, projection and ordering
            score_expr = self.lowering.lower_score(compiled.score)
            where = and_(where, score_expr > 0)
        if proximity is not None:
            where = and_(where, self.lowering.lower(
                OneOf("event.venue_id", tuple(sorted(proximity.venue_ids)))))

        total_count = db.query(func.count(Event.id)).filter(where).scalar() or 0

        page, page_size = clamp_page(filters.page, filters.page_size,
                                     self.default_page_size, self.max_page_size)
        window = paginate(total_count, page, page_size)

        mode, order, distance_fallback = self._effective_sort(filters, proximity)
        rows: List[EventRow] = []
        if total_count and window.offset < total_count:
            score_col = score_expr.label("relevance_score") if score_expr is not None else None
            columns = [Event] + ([score_col] if score_col is not None else [])
            query = (
                db.query(*columns)
                .filter(where)
                .order_by(*self.order_by(mode, order, score_col, proximity))
                .offset(window.offset)
                .limit(window.page_size)
                .options(
                    selectinload(Event.venue),
                    selectinload(Event.tags),
                    selectinload(Event.prices),
                )
            )
            for result in query.all():
                if score_col is not None:
                    event, score = result
                else:
                    event, score = result, 0.0
                rows.append(self._to_row(event, score, proximity))

        logger.info(
            "Search assembled: query=%r sort=%s total=%d page=%d/%d rows=%d",
            filters.query, mode.value, total_count, window.page, window.total_pages, len(rows),
        )
        return SearchPage(
            rows=rows,
            total_count=window.total_count,
            page=window.page,
            page_size=window.page_size,
            total_pages=window.total_pages,
            has_next=window.has_next,
            has_prev=window.has_prev,
            search_meta=SearchMeta(
                query=filters.query,
                sort_by=mode.value,
                sort_order=order.value,
                filters=filters.applied_filters(),
                distance_fallback=distance_fallback,
            ),
        )

    def _effective_sort(self, filters: SearchFilters,
                        proximity: Optional[ProximitySet]) -> Tuple[SortMode, SortOrder, bool]:
        mode = filters.sort.mode
        distance_fallback = False
        if mode == SortMode.DISTANCE and proximity is None:
            # no center point: distance sort behaves exactly like date sort
            mode = SortMode.DATE
            distance_fallback = True

        if mode in (SortMode.DATE, SortMode.PRICE):
            order = filters.sort.order or SortOrder.ASC
        elif mode == SortMode.DISTANCE:
            order = SortOrder.ASC
        else:
            order = SortOrder.DESC
        return mode, order, distance_fallback

    def order_by(
        self,
        mode: SortMode,
        order: SortOrder,
        score_col: Optional[ColumnElement] = None,
        proximity: Optional[ProximitySet] = None,
    ) -> List[ColumnElement]:
        """Order clauses for a sort mode; every mode ends with id for determinism."""
        soonest = Event.start_date.asc()
        if mode == SortMode.RELEVANCE:
            if score_col is not None:
                clauses = [score_col.desc(), soonest]
            else:
                clauses = [Event.featured.desc(), soonest]
        elif mode == SortMode.DATE:
            clauses = [Event.start_date.desc() if order == SortOrder.DESC else soonest]
        elif mode == SortMode.POPULARITY:
            clauses = [
                Event.featured.desc(),
                Event.save_count.desc(),
                Event.attendance_count.desc(),
                soonest,
            ]
        elif mode == SortMode.DISTANCE:
            clauses = []
            if proximity is not None and proximity.distances:
                distance = case(proximity.distances, value=Event.venue_id, else_=None)
                clauses.append(distance.asc())
            clauses.append(soonest)
        elif mode == SortMode.PRICE:
            min_price = (
                select(func.min(EventPrice.amount))
                .where(EventPrice.event_id == Event.id, EventPrice.available.is_(True))
                .correlate(Event)
                .scalar_subquery()
            )
            direction = min_price.desc() if order == SortOrder.DESC else min_price.asc()
            # events without an available price go last in both directions
            clauses = [min_price.is_(None).asc(), direction, soonest]
        else:
            clauses = [soonest]
        clauses.append(Event.id.asc())
        return clauses

    def _to_row(self, event: Event, score, proximity: Optional[ProximitySet]) -> EventRow:
        venue = event.venue
        return EventRow(
            id=event.id,
            name=event.name,
            description=event.description,
            style=event.style,
            start_date=event.start_date,
            end_date=event.end_date,
            city=event.city,
            country=event.country,
            featured=bool(event.featured),
            tags=[t.tag for t in event.tags],
            venue=VenueSummary(
                id=venue.id, name=venue.name, address=venue.address,
                city=venue.city, country=venue.country, lat=venue.lat, lng=venue.lng,
            ) if venue else None,
            pricing=[
                PriceInfo(amount=p.amount, currency=p.currency, type=p.type, available=bool(p.available))
                for p in sorted(event.prices, key=lambda p: p.amount)
            ],
            save_count=event.save_count or 0,
            attendance_count=event.attendance_count or 0,
            review_count=event.review_count or 0,
            relevance_score=float(score or 0.0),
            distance_km=proximity.distance_for(event.venue_id) if proximity else None,
        )
