"""
Predicate tree for event search.

Tagged variants describe *what* to match; ``apps.events.services.sql_lowering`` turns
them into native SQLAlchemy expressions. Fields and relations are symbolic names
("event.name", "event.teachers") resolved by the lowering registry.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple, Union


class TextMode(str, Enum):
    EXACT = "exact"        # case-insensitive equality
    PREFIX = "prefix"      # case-insensitive starts-with
    CONTAINS = "contains"  # case-insensitive substring


@dataclass(frozen=True)
class TextMatch:
    field: str
    text: str
    mode: TextMode = TextMode.CONTAINS


@dataclass(frozen=True)
class Range:
    """Inclusive numeric/date range; a missing bound is open."""
    field: str
    low: Optional[Any] = None
    high: Optional[Any] = None


@dataclass(frozen=True)
class OneOf:
    field: str
    values: Tuple[Any, ...]
    case_insensitive: bool = False


@dataclass(frozen=True)
class ExistsIn:
    """At least one related row satisfies ``where``."""
    relation: str
    where: "Predicate"


@dataclass(frozen=True)
class And:
    items: Tuple["Predicate", ...]


@dataclass(frozen=True)
class Or:
    items: Tuple["Predicate", ...]


Predicate = Union[TextMatch, Range, OneOf, ExistsIn, And, Or]


@dataclass(frozen=True)
class WeightedScore:
    """Score = highest weight whose predicate matches, 0 when none does."""
    tiers: Tuple[Tuple[float, Predicate], ...]

    def ordered(self) -> Tuple[Tuple[float, Predicate], ...]:
        return tuple(sorted(self.tiers, key=lambda tier: -tier[0]))


def all_of(*items: Optional[Predicate]) -> And:
    return And(tuple(item for item in items if item is not None))


def any_of(*items: Optional[Predicate]) -> Or:
    return Or(tuple(item for item in items if item is not None))
