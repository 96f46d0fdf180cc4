#!/usr/bin/env python3
"""Teacher and musician directory search"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from apps.core.config import Settings, settings as default_settings
from apps.core.errors import ValidationError
from apps.core.store import StoreHandle
from apps.events.models import Musician, Teacher
from apps.events.schemas.filters import SortOrder, normalize_text, normalize_values
from apps.events.schemas.predicates import (
    ExistsIn, Predicate, Range, TextMatch, TextMode, WeightedScore, all_of, any_of,
)
from apps.events.schemas.results import DirectoryPage, PersonRow
from apps.events.services.result_assembler import clamp_page, paginate
from apps.events.services.sql_lowering import SqlLowering

logger = logging.getLogger(__name__)

DIRECTORY_SORTS = ("name", "relevance")


class DirectoryService:
    """Paginated name/bio search over teachers and musicians."""

    def __init__(self, store: StoreHandle, settings: Optional[Settings] = None,
                 lowering: Optional[SqlLowering] = None):
        self.store = store
        self.settings = settings or default_settings
        self.lowering = lowering or SqlLowering()

    def search_teachers(
        self,
        query: Optional[str],
        specialties: Optional[Iterable[str]] = None,
        location: Optional[str] = None,
        has_upcoming_events: Optional[bool] = None,
        page: int = 1,
        page_size: Optional[int] = None,
        sort_by: str = "name",
        sort_order: Optional[str] = None,
    ) -> DirectoryPage:
        return self._search(Teacher, "teacher", "specialties", query, specialties,
                            location, has_upcoming_events, page, page_size, sort_by, sort_order)

    def search_musicians(
        self,
        query: Optional[str],
        genres: Optional[Iterable[str]] = None,
        location: Optional[str] = None,
        has_upcoming_events: Optional[bool] = None,
        page: int = 1,
        page_size: Optional[int] = None,
        sort_by: str = "name",
        sort_order: Optional[str] = None,
    ) -> DirectoryPage:
        return self._search(Musician, "musician", "genres", query, genres,
                            location, has_upcoming_events, page, page_size, sort_by, sort_order)

    def _search(self, model, entity, tag_field, query, tags, location, has_upcoming_events,
                page, page_size, sort_by, sort_order) -> DirectoryPage:
        text = normalize_text(query)
        if not text or len(text) < self.settings.suggest_min_query_length:
            raise ValidationError(
                f"Search query must be at least {self.settings.suggest_min_query_length} characters"
            )
        sort_by = (sort_by or "name").lower()
        if sort_by not in DIRECTORY_SORTS:
            raise ValidationError(f"Unknown directory sort '{sort_by}'")
        try:
            order = SortOrder(sort_order.lower()) if sort_order else None
        except ValueError:
            raise ValidationError(f"Unknown sort order '{sort_order}'") from None
        if order is None:
            # natural direction: names A-Z, best match first
            order = SortOrder.ASC if sort_by == "name" else SortOrder.DESC

        page, page_size = clamp_page(page, page_size, self.settings.search_default_page_size,
                                     self.settings.search_max_page_size)
        predicate = self.build_predicate(entity, tag_field, text, normalize_values(tags),
                                         normalize_text(location), has_upcoming_events)
        score = self.name_score(entity, text) if sort_by == "relevance" else None
        return self.store.run(
            lambda db: self._execute(db, model, entity, tag_field, predicate, score, order, page, page_size),
            label=f"directory:{entity}",
        )

    def build_predicate(
        self,
        entity: str,
        tag_field: str,
        text: str,
        tags: Iterable[str] = (),
        location: Optional[str] = None,
        has_upcoming_events: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> Predicate:
        events = f"{entity}.events"
        return all_of(
            any_of(TextMatch(f"{entity}.name", text), TextMatch(f"{entity}.bio", text)),
            any_of(*[TextMatch(f"{entity}.{tag_field}", tag) for tag in tags]) if tags else None,
            ExistsIn(events, ExistsIn("event.venue", any_of(
                TextMatch("venue.city", location),
                TextMatch("venue.country", location),
            ))) if location else None,
            ExistsIn(events, Range("event.start_date", low=now or datetime.now()))
            if has_upcoming_events else None,
        )

    @staticmethod
    def name_score(entity: str, text: str) -> WeightedScore:
        """Exact name beats a name prefix, which beats the query anywhere in the name; bio-only hits score 0."""
        return WeightedScore((
            (3.0, TextMatch(f"{entity}.name", text, TextMode.EXACT)),
            (2.0, TextMatch(f"{entity}.name", text, TextMode.PREFIX)),
            (1.0, TextMatch(f"{entity}.name", text)),
        ))

    def _execute(self, db: Session, model, entity, tag_field, predicate, score, order,
                 page, page_size) -> DirectoryPage:
        where = self.lowering.lower(predicate)
        total_count = db.query(func.count(model.id)).filter(where).scalar() or 0
        window = paginate(total_count, page, page_size)

        if score is not None:
            score_expr = self.lowering.lower_score(score)
            ordering = [score_expr.desc() if order == SortOrder.DESC else score_expr.asc(), model.name.asc()]
        else:
            ordering = [model.name.desc() if order == SortOrder.DESC else model.name.asc()]
        ordering.append(model.id.asc())

        rows: List[PersonRow] = []
        if total_count and window.offset < total_count:
            people = (
                db.query(model)
                .filter(where)
                .order_by(*ordering)
                .offset(window.offset)
                .limit(window.page_size)
                .all()
            )
            csv_column = "specialties_csv" if tag_field == "specialties" else "genres_csv"
            rows = [
                PersonRow(
                    id=person.id,
                    name=person.name,
                    bio=person.bio,
                    tags=list(normalize_values((getattr(person, csv_column) or "").split(","))),
                )
                for person in people
            ]

        logger.info("Directory %s search: total=%d page=%d rows=%d", entity, total_count, page, len(rows))
        return DirectoryPage(
            rows=rows,
            total_count=window.total_count,
            page=window.page,
            page_size=window.page_size,
            total_pages=window.total_pages,
            has_next=window.has_next,
            has_prev=window.has_prev,
        )
