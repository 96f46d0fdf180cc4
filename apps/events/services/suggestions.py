#!/usr/bin/env python3
"""
Suggestion engine: autocomplete over events, teachers, musicians and locations.

Branches run concurrently on the store's worker pool, each with its own deadline.
A branch that errors or misses its deadline contributes an empty list.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from apps.core.config import Settings, settings as default_settings
from apps.core.errors import StoreError, StoreTimeoutError, ValidationError
from apps.core.store import StoreHandle
from apps.events.models import Event, Musician, Teacher
from apps.events.schemas.filters import normalize_text
from apps.events.schemas.predicates import TextMatch, any_of
from apps.events.schemas.results import Suggestions
from apps.events.services.sql_lowering import SqlLowering

logger = logging.getLogger(__name__)

KINDS = ("all", "events", "teachers", "musicians", "locations")

# kind -> branches it needs; locations derive from event rows
BRANCHES_FOR_KIND = {
    "all": ("events", "teachers", "musicians"),
    "events": ("events",),
    "locations": ("events",),
    "teachers": ("teachers",),
    "musicians": ("musicians",),
}


@dataclass(frozen=True)
class Ok:
    value: list


@dataclass(frozen=True)
class Err:
    error: Exception

    @property
    def timed_out(self) -> bool:
        return isinstance(self.error, StoreTimeoutError)


BranchOutcome = Union[Ok, Err]


def derive_locations(rows: List[Tuple[str, Optional[str], Optional[str]]], limit: int) -> List[str]:
    """Unique cities, then countries, then "City, Country" pairs, capped at limit."""
    candidates: List[str] = []
    candidates.extend(city for _, city, _ in rows if city)
    candidates.extend(country for _, _, country in rows if country)
    candidates.extend(f"{city}, {country}" for _, city, country in rows if city and country)
    return list(dict.fromkeys(candidates))[:limit]


class SuggestionService:
    """Fan-out autocomplete over the injected store handle."""

    def __init__(self, store: StoreHandle, settings: Optional[Settings] = None,
                 lowering: Optional[SqlLowering] = None):
        self.store = store
        self.settings = settings or default_settings
        self.lowering = lowering or SqlLowering()

    def clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.settings.suggest_default_limit
        return min(max(int(limit), 1), self.settings.suggest_max_limit)

    def suggest(self, query: Optional[str], limit: Optional[int] = None, kind: str = "all") -> Suggestions:
        kind = (kind or "all").lower()
        if kind not in KINDS:
            raise ValidationError(f"Unknown suggestion kind '{kind}'")

        text = normalize_text(query) or ""
        if len(text) < self.settings.suggest_min_query_length:
            return Suggestions()
        limit = self.clamp_limit(limit)

        outcomes = self._fan_out(text, limit, BRANCHES_FOR_KIND[kind])
        self._raise_if_all_failed(outcomes)

        event_rows = self._value(outcomes.get("events"))
        result = Suggestions(
            events=[name for name, _, _ in event_rows][:limit],
            teachers=self._value(outcomes.get("teachers"))[:limit],
            musicians=self._value(outcomes.get("musicians"))[:limit],
            locations=derive_locations(event_rows, limit),
        )
        if kind != "all":
            # only the requested list is populated
            result = Suggestions(**{kind: getattr(result, kind)})
        logger.debug(
            "Suggestions for %r (%s): events=%d teachers=%d musicians=%d locations=%d",
            text, kind, len(result.events), len(result.teachers),
            len(result.musicians), len(result.locations),
        )
        return result

    def _fan_out(self, text: str, limit: int, branches: Tuple[str, ...]) -> Dict[str, BranchOutcome]:
        plan: Dict[str, Tuple[Callable[[Session], list], float]] = {
            "events": (lambda db: self._events(db, text, limit), self.settings.suggest_event_timeout_s),
            "teachers": (lambda db: self._people(db, Teacher, "teacher", text, limit), self.settings.suggest_branch_timeout_s),
            "musicians": (lambda db: self._people(db, Musician, "musician", text, limit), self.settings.suggest_branch_timeout_s),
        }
        started = time.monotonic()
        # event branch goes first so it is never starved by the others
        futures = {
            name: (self.store.submit(plan[name][0], timeout_s=plan[name][1], label=f"suggest:{name}"), plan[name][1])
            for name in ("events", "teachers", "musicians") if name in branches
        }

        outcomes: Dict[str, BranchOutcome] = {}
        for name, (future, timeout_s) in futures.items():
            remaining = timeout_s - (time.monotonic() - started)
            try:
                outcomes[name] = Ok(self.store.wait(future, remaining, label=f"suggest:{name}"))
            except StoreError as exc:
                logger.warning("Suggestion branch '%s' failed: %s", name, exc)
                outcomes[name] = Err(exc)
        return outcomes

    @staticmethod
    def _raise_if_all_failed(outcomes: Dict[str, BranchOutcome]) -> None:
        errors = [o for o in outcomes.values() if isinstance(o, Err)]
        if outcomes and len(errors) == len(outcomes) and not any(e.timed_out for e in errors):
            raise StoreError(f"All suggestion branches failed: {errors[0].error}") from errors[0].error

    @staticmethod
    def _value(outcome: Optional[BranchOutcome]) -> list:
        if isinstance(outcome, Ok):
            return outcome.value
        return []

    def _events(self, db: Session, text: str, limit: int) -> List[Tuple[str, Optional[str], Optional[str]]]:
        where = self.lowering.lower(any_of(
            TextMatch("event.name", text),
            TextMatch("event.city", text),
            TextMatch("event.country", text),
        ))
        rows = (
            db.query(Event.name, Event.city, Event.country)
            .filter(where)
            .order_by(Event.start_date.desc(), Event.id.asc())
            .limit(limit * 2)
            .all()
        )
        return [(name, city, country) for name, city, country in rows]

    def _people(self, db: Session, model, entity: str, text: str, limit: int) -> List[str]:
        where = self.lowering.lower(TextMatch(f"{entity}.name", text))
        rows = db.query(model.name).filter(where).order_by(model.name.asc(), model.id.asc()).limit(limit).all()
        return [name for (name,) in rows]
