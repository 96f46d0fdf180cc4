#!/usr/bin/env python3
"""Relevance scoring for free-text event search"""

import logging
from typing import Optional, Tuple

from apps.events.schemas.predicates import (
    ExistsIn, Or, Predicate, TextMatch, TextMode, WeightedScore,
)

logger = logging.getLogger(__name__)


# Weight table. The per-event score is the highest matching weight, never a sum:
# generic terms hitting many weak fields must not outrank an exact or prefix name hit.
EVENT_NAME_EXACT = 100.0
TEACHER_NAME_EXACT = 90.0
MUSICIAN_NAME_EXACT = 85.0
EVENT_NAME_PREFIX = 80.0
TEACHER_NAME_PARTIAL = 70.0
MUSICIAN_NAME_PARTIAL = 65.0
EVENT_NAME_CONTAINS = 60.0
DESCRIPTION_CONTAINS = 40.0
CITY_CONTAINS = 30.0
STYLE_CONTAINS = 25.0
COUNTRY_CONTAINS = 20.0


class RelevanceScorer:
    """Builds the one authoritative score expression for a text query."""

    def build(self, query: Optional[str]) -> Optional[WeightedScore]:
        """Return the weighted score tree, or None when there is no text to score."""
        if not query:
            return None
        tiers: Tuple[Tuple[float, Predicate], ...] = (
            (EVENT_NAME_EXACT, TextMatch("event.name", query, TextMode.EXACT)),
            (TEACHER_NAME_EXACT, ExistsIn("event.teachers", TextMatch("teacher.name", query, TextMode.EXACT))),
            (MUSICIAN_NAME_EXACT, ExistsIn("event.musicians", TextMatch("musician.name", query, TextMode.EXACT))),
            (EVENT_NAME_PREFIX, TextMatch("event.name", query, TextMode.PREFIX)),
            (TEACHER_NAME_PARTIAL, ExistsIn("event.teachers", TextMatch("teacher.name", query))),
            (MUSICIAN_NAME_PARTIAL, ExistsIn("event.musicians", TextMatch("musician.name", query))),
            (EVENT_NAME_CONTAINS, TextMatch("event.name", query)),
            (DESCRIPTION_CONTAINS, TextMatch("event.description", query)),
            (CITY_CONTAINS, TextMatch("event.city", query)),
            (STYLE_CONTAINS, Or((
                TextMatch("event.style", query),
                ExistsIn("event.tags", TextMatch("tag.tag", query)),
            ))),
            (COUNTRY_CONTAINS, TextMatch("event.country", query)),
        )
        logger.debug("Relevance tiers built for query '%s'", query)
        return WeightedScore(tiers)
