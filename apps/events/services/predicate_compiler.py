#!/usr/bin/env python3
"""Compile a SearchFilters request into predicate trees"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from apps.events.schemas.filters import SearchFilters
from apps.events.schemas.predicates import (
    And, ExistsIn, OneOf, Or, Predicate, Range, TextMatch, WeightedScore, all_of,
)
from apps.events.services.relevance import RelevanceScorer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledSearch:
    """Facet predicate (AND between facets) plus the optional text score."""
    facets: And
    score: Optional[WeightedScore] = None


class PredicateCompiler:
    """Filter Model -> composable predicates. Empty fields add nothing."""

    def __init__(self, scorer: Optional[RelevanceScorer] = None):
        self.scorer = scorer or RelevanceScorer()

    def compile(self, filters: SearchFilters) -> CompiledSearch:
        facets = all_of(
            *self._date_range(filters),
            self._people("event.teachers", "teacher", filters.teachers),
            self._people("event.musicians", "musician", filters.musicians),
            self._tags(filters.event_types),
            self._tags(filters.skill_levels),
            self._price(filters),
            TextMatch("event.city", filters.city) if filters.city else None,
            TextMatch("event.country", filters.country) if filters.country else None,
            OneOf("event.featured", (filters.featured,)) if filters.featured is not None else None,
        )
        score = self.scorer.build(filters.query)
        logger.debug("Compiled %d facet predicates (text=%s)", len(facets.items), bool(score))
        return CompiledSearch(facets=facets, score=score)

    def _date_range(self, filters: SearchFilters) -> List[Predicate]:
        window = filters.date_range
        if not window or window.is_open:
            return []
        bounds = []
        if window.start is not None:
            bounds.append(Range("event.start_date", low=window.start))
        if window.end is not None:
            bounds.append(Range("event.end_date", high=window.end))
        return bounds

    def _people(self, relation: str, entity: str, values: Sequence[str]) -> Optional[Predicate]:
        """Any related person whose id equals a value or whose name contains it."""
        if not values:
            return None
        alternatives: List[Predicate] = []
        for value in values:
            if value.isdecimal():
                alternatives.append(OneOf(f"{entity}.id", (int(value),)))
            alternatives.append(TextMatch(f"{entity}.name", value))
        return ExistsIn(relation, Or(tuple(alternatives)))

    def _tags(self, values: Sequence[str]) -> Optional[Predicate]:
        if not values:
            return None
        return ExistsIn("event.tags", OneOf("tag.tag", tuple(values), case_insensitive=True))

    def _price(self, filters: SearchFilters) -> Optional[Predicate]:
        price = filters.price_range
        if not price or price.is_open:
            return None
        return ExistsIn("event.prices", Range("price.amount", low=price.min, high=price.max))
