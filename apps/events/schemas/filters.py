"""
Filter Model: the structured, request-scoped representation of an event search.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from apps.core.errors import ValidationError


class SortMode(str, Enum):
    RELEVANCE = "relevance"
    DATE = "date"
    DISTANCE = "distance"
    POPULARITY = "popularity"
    PRICE = "price"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class GeoFilter:
    """Center point plus radius in kilometers."""
    lat: float
    lng: float
    radius_km: float

    def __post_init__(self):
        if not -90.0 <= self.lat <= 90.0:
            raise ValidationError(f"Latitude must be between -90 and 90, got {self.lat}")
        if not -180.0 <= self.lng <= 180.0:
            raise ValidationError(f"Longitude must be between -180 and 180, got {self.lng}")
        if self.radius_km <= 0:
            raise ValidationError(f"Radius must be positive, got {self.radius_km}")


@dataclass(frozen=True)
class DateRange:
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self):
        if self.start and self.end and self.start > self.end:
            raise ValidationError("Date range start must not be after its end")

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None


@dataclass(frozen=True)
class PriceRange:
    min: Optional[float] = None
    max: Optional[float] = None

    def __post_init__(self):
        if self.min is not None and self.min < 0:
            raise ValidationError("Minimum price must not be negative")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValidationError("Minimum price must not exceed maximum price")

    @property
    def is_open(self) -> bool:
        return self.min is None and self.max is None


@dataclass(frozen=True)
class SortSpec:
    mode: SortMode = SortMode.RELEVANCE
    order: Optional[SortOrder] = None  # None = the mode's natural direction


@dataclass(frozen=True)
class SearchFilters:
    """Everything a search request can ask for. Absent fields constrain nothing."""
    query: Optional[str] = None
    geo: Optional[GeoFilter] = None
    date_range: Optional[DateRange] = None
    teachers: Tuple[str, ...] = ()
    musicians: Tuple[str, ...] = ()
    event_types: Tuple[str, ...] = ()
    skill_levels: Tuple[str, ...] = ()
    price_range: Optional[PriceRange] = None
    city: Optional[str] = None
    country: Optional[str] = None
    featured: Optional[bool] = None
    sort: SortSpec = field(default_factory=SortSpec)
    page: int = 1
    page_size: int = 20

    @property
    def has_text(self) -> bool:
        return bool(self.query)

    def applied_filters(self) -> Dict[str, Any]:
        """Active facets only, in a JSON-friendly shape (search meta and cache keys)."""
        applied: Dict[str, Any] = {}
        if self.geo:
            applied["location"] = {"lat": self.geo.lat, "lng": self.geo.lng, "radius_km": self.geo.radius_km}
        if self.date_range and not self.date_range.is_open:
            applied["date_range"] = {
                "start": self.date_range.start.isoformat() if self.date_range.start else None,
                "end": self.date_range.end.isoformat() if self.date_range.end else None,
            }
        for name in ("teachers", "musicians", "event_types", "skill_levels"):
            values = getattr(self, name)
            if values:
                applied[name] = list(values)
        if self.price_range and not self.price_range.is_open:
            applied["price_range"] = {"min": self.price_range.min, "max": self.price_range.max}
        if self.city:
            applied["city"] = self.city
        if self.country:
            applied["country"] = self.country
        if self.featured is not None:
            applied["featured"] = self.featured
        return applied


def normalize_text(value: Optional[str]) -> Optional[str]:
    """Strip and collapse whitespace; empty text means no constraint."""
    if value is None:
        return None
    cleaned = re.sub(r"\s+", " ", value).strip()
    return cleaned or None


def normalize_values(values: Optional[Iterable[str]]) -> Tuple[str, ...]:
    """Trim, drop empties and de-duplicate case-insensitively, keeping first-seen order."""
    out = []
    seen = set()
    for raw in values or ():
        value = normalize_text(raw)
        if not value or value.lower() in seen:
            continue
        seen.add(value.lower())
        out.append(value)
    return tuple(out)


def split_csv(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return normalize_values(value.split(","))


def build_filters(
    query: Optional[str] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius_km: Optional[float] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    teachers: Optional[Iterable[str]] = None,
    musicians: Optional[Iterable[str]] = None,
    event_types: Optional[Iterable[str]] = None,
    skill_levels: Optional[Iterable[str]] = None,
    price_min: Optional[float] = None,
    price_max: Optional[float] = None,
    city: Optional[str] = None,
    country: Optional[str] = None,
    featured: Optional[bool] = None,
    sort: str = SortMode.RELEVANCE.value,
    order: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
    default_radius_km: float = 10.0,
) -> SearchFilters:
    """Validate loose request parameters into a SearchFilters instance."""
    if (lat is None) != (lng is None):
        raise ValidationError("Both lat and lng are required for a location filter")
    if radius_km is not None and lat is None:
        raise ValidationError("A radius requires a center point (lat and lng)")

    geo = None
    if lat is not None and lng is not None:
        geo = GeoFilter(lat=float(lat), lng=float(lng),
                        radius_km=float(radius_km if radius_km is not None else default_radius_km))

    date_range = DateRange(start=date_from, end=date_to) if (date_from or date_to) else None
    price_range = PriceRange(min=price_min, max=price_max) if (price_min is not None or price_max is not None) else None

    try:
        mode = SortMode((sort or SortMode.RELEVANCE.value).lower())
    except ValueError:
        raise ValidationError(f"Unknown sort mode '{sort}'") from None
    try:
        sort_order = SortOrder(order.lower()) if order else None
    except ValueError:
        raise ValidationError(f"Unknown sort order '{order}'") from None

    return SearchFilters(
        query=normalize_text(query),
        geo=geo,
        date_range=date_range,
        teachers=normalize_values(teachers),
        musicians=normalize_values(musicians),
        event_types=normalize_values(event_types),
        skill_levels=normalize_values(skill_levels),
        price_range=price_range,
        city=normalize_text(city),
        country=normalize_text(country),
        featured=featured,
        sort=SortSpec(mode=mode, order=sort_order),
        page=page,
        page_size=page_size,
    )
