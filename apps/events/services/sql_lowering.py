"""Lower predicate trees to SQLAlchemy expressions."""

import logging
from typing import Dict

from sqlalchemy import and_, case, false, func, literal, or_, true
from sqlalchemy.sql.elements import ColumnElement

from apps.events.models import Event, EventPrice, EventTag, Musician, Teacher, Venue
from apps.events.schemas.predicates import (
    And, ExistsIn, OneOf, Or, Predicate, Range, TextMatch, TextMode, WeightedScore,
)

logger = logging.getLogger(__name__)


FIELDS: Dict[str, ColumnElement] = {
    "event.id": Event.id,
    "event.name": Event.name,
    "event.description": Event.description,
    "event.style": Event.style,
    "event.city": Event.city,
    "event.country": Event.country,
    "event.start_date": Event.start_date,
    # an event without an end date ends on the day it starts
    "event.end_date": func.coalesce(Event.end_date, Event.start_date),
    "event.featured": Event.featured,
    "event.venue_id": Event.venue_id,
    "tag.tag": EventTag.tag,
    "price.amount": EventPrice.amount,
    "price.available": EventPrice.available,
    "venue.city": Venue.city,
    "venue.country": Venue.country,
    "teacher.id": Teacher.id,
    "teacher.name": Teacher.name,
    "teacher.bio": Teacher.bio,
    "teacher.specialties": Teacher.specialties_csv,
    "musician.id": Musician.id,
    "musician.name": Musician.name,
    "musician.bio": Musician.bio,
    "musician.genres": Musician.genres_csv,
}

RELATIONS = {
    "event.teachers": Event.teachers,
    "event.musicians": Event.musicians,
    "event.tags": Event.tags,
    "event.prices": Event.prices,
    "event.venue": Event.venue,
    "teacher.events": Teacher.events,
    "musician.events": Musician.events,
}


class SqlLowering:
    """Query builder for the relational store: predicate tree -> SQL expression."""

    def __init__(self, fields: Dict[str, ColumnElement] = None, relations: Dict = None):
        self.fields = fields or FIELDS
        self.relations = relations or RELATIONS

    def lower(self, predicate: Predicate) -> ColumnElement:
        if isinstance(predicate, And):
            if not predicate.items:
                return true()
            return and_(*[self.lower(item) for item in predicate.items])
        if isinstance(predicate, Or):
            if not predicate.items:
                return false()
            return or_(*[self.lower(item) for item in predicate.items])
        if isinstance(predicate, TextMatch):
            return self._lower_text(predicate)
        if isinstance(predicate, Range):
            return self._lower_range(predicate)
        if isinstance(predicate, OneOf):
            return self._lower_one_of(predicate)
        if isinstance(predicate, ExistsIn):
            return self._lower_exists(predicate)
        raise TypeError(f"Unsupported predicate: {predicate!r}")

    def lower_score(self, score: WeightedScore) -> ColumnElement:
        """CASE over tiers by descending weight: the first hit is the maximum weight."""
        whens = [(self.lower(predicate), weight) for weight, predicate in score.ordered()]
        if not whens:
            return case((false(), 0), else_=0)
        return case(*whens, else_=0)

    def column(self, name: str) -> ColumnElement:
        try:
            return self.fields[name]
        except KeyError:
            raise KeyError(f"Unknown search field '{name}'") from None

    def _lower_text(self, predicate: TextMatch) -> ColumnElement:
        col = self.column(predicate.field)
        if predicate.mode == TextMode.EXACT:
            # both sides folded by the database so they fold the same way
            return func.lower(col) == func.lower(literal(predicate.text))
        if predicate.mode == TextMode.PREFIX:
            return col.istartswith(predicate.text, autoescape=True)
        return col.icontains(predicate.text, autoescape=True)

    def _lower_range(self, predicate: Range) -> ColumnElement:
        col = self.column(predicate.field)
        bounds = []
        if predicate.low is not None:
            bounds.append(col >= predicate.low)
        if predicate.high is not None:
            bounds.append(col <= predicate.high)
        if not bounds:
            return true()
        return and_(*bounds)

    def _lower_one_of(self, predicate: OneOf) -> ColumnElement:
        if not predicate.values:
            return false()
        col = self.column(predicate.field)
        values = list(predicate.values)
        if predicate.case_insensitive:
            col = func.lower(col)
            values = [str(v).lower() for v in values]
        if len(values) == 1:
            return col == values[0]
        return col.in_(values)

    def _lower_exists(self, predicate: ExistsIn) -> ColumnElement:
        try:
            attr = self.relations[predicate.relation]
        except KeyError:
            raise KeyError(f"Unknown search relation '{predicate.relation}'") from None
        inner = self.lower(predicate.where)
        if attr.property.uselist:
            return attr.any(inner)
        return attr.has(inner)
