#!/usr/bin/env python3
"""Geo proximity resolver: venues within a radius of a center point"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from apps.events.models import Venue
from apps.events.schemas.filters import GeoFilter

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0088
# bbox prefilter is widened slightly; the haversine check is authoritative
BBOX_MARGIN = 1.001


@dataclass(frozen=True)
class ProximitySet:
    """Venues inside the radius and their great-circle distance in km."""
    center: GeoFilter
    distances: Dict[int, float] = field(default_factory=dict)

    @property
    def venue_ids(self) -> FrozenSet[int]:
        return frozenset(self.distances)

    def distance_for(self, venue_id: Optional[int]) -> Optional[float]:
        if venue_id is None:
            return None
        return self.distances.get(venue_id)


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Numerically stable Haversine distance in kilometers."""
    rlat1, rlng1 = math.radians(lat1), math.radians(lng1)
    rlat2, rlng2 = math.radians(lat2), math.radians(lng2)
    dlat = rlat2 - rlat1
    dlng = rlng2 - rlng1
    a = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlng / 2) ** 2
    c = 2 * math.asin(min(1.0, math.sqrt(a)))
    return EARTH_RADIUS_KM * c


def bounding_box(lat: float, lng: float, radius_km: float) -> Tuple[float, float, Optional[float], Optional[float]]:
    """
    Get bounding box (lat_min, lat_max, lng_min, lng_max) around a point.

    Longitude bounds are None when the cap covers a pole. They may fall outside
    [-180, 180] when the box crosses the antimeridian.
    """
    angular = (radius_km / EARTH_RADIUS_KM) * BBOX_MARGIN
    lat_delta = math.degrees(angular)
    lat_min = max(-90.0, lat - lat_delta)
    lat_max = min(90.0, lat + lat_delta)

    cos_lat = math.cos(math.radians(lat))
    if lat_min <= -90.0 or lat_max >= 90.0 or math.sin(angular) >= cos_lat:
        return lat_min, lat_max, None, None

    lng_delta = math.degrees(math.asin(math.sin(angular) / cos_lat))
    return lat_min, lat_max, lng - lng_delta, lng + lng_delta


class GeoProximityResolver:
    """Resolves the proximity set independently of every other filter."""

    def resolve(self, db: Session, geo: GeoFilter) -> ProximitySet:
        lat_min, lat_max, lng_min, lng_max = bounding_box(geo.lat, geo.lng, geo.radius_km)

        query = Venue.filter_valid_coordinates(db.query(Venue.id, Venue.lat, Venue.lng))
        query = query.filter(Venue.lat.between(lat_min, lat_max))
        if lng_min is not None and lng_max is not None:
            if lng_min < -180.0:
                query = query.filter(or_(Venue.lng >= lng_min + 360.0, Venue.lng <= lng_max))
            elif lng_max > 180.0:
                query = query.filter(or_(Venue.lng >= lng_min, Venue.lng <= lng_max - 360.0))
            else:
                query = query.filter(Venue.lng.between(lng_min, lng_max))

        distances: Dict[int, float] = {}
        candidates = 0
        for venue_id, lat, lng in query.all():
            candidates += 1
            if math.isnan(lat) or math.isnan(lng):
                continue
            distance = haversine_km(geo.lat, geo.lng, lat, lng)
            if distance <= geo.radius_km:
                distances[venue_id] = round(distance, 3)

        logger.debug(
            "Proximity (%.4f, %.4f) r=%.2fkm: bbox=%d in_radius=%d",
            geo.lat, geo.lng, geo.radius_km, candidates, len(distances),
        )
        return ProximitySet(center=geo, distances=distances)
