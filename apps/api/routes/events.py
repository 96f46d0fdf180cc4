import logging
import time
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from apps.api.deps import get_search_service, get_suggestion_service
from apps.events.schemas.filters import build_filters, split_csv
from apps.events.schemas.results import SearchPage, Suggestions
from apps.events.services.search import SearchService
from apps.events.services.suggestions import SuggestionService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/events/search", response_model=SearchPage)
def search_events(
    response: Response,
    query: Optional[str] = Query(None, max_length=200, description="Free-text query"),
    lat: Optional[float] = Query(None, description="Center latitude"),
    lng: Optional[float] = Query(None, description="Center longitude"),
    radius_km: Optional[float] = Query(None, description="Search radius in kilometers"),
    date_from: Optional[datetime] = Query(None, description="Events starting at or after"),
    date_to: Optional[datetime] = Query(None, description="Events ending at or before"),
    teachers: Optional[str] = Query(None, description="Comma-separated teacher ids or names"),
    musicians: Optional[str] = Query(None, description="Comma-separated musician ids or names"),
    event_types: Optional[str] = Query(None, description="Comma-separated event types"),
    skill_levels: Optional[str] = Query(None, description="Comma-separated skill levels"),
    price_min: Optional[float] = Query(None),
    price_max: Optional[float] = Query(None),
    city: Optional[str] = Query(None),
    country: Optional[str] = Query(None),
    featured: Optional[bool] = Query(None),
    sort: str = Query("relevance", description="relevance, date, distance, popularity or price"),
    order: Optional[str] = Query(None, description="asc or desc (date and price sorts)"),
    page: int = Query(1, description="1-indexed page, clamped to >= 1"),
    page_size: Optional[int] = Query(None, description="Page size, clamped to [1, 100]"),
    search_service: SearchService = Depends(get_search_service),
):
    """Search events with text relevance, facets, proximity, sorting and pagination"""
    start_time = time.time()
    filters = build_filters(
        query=query,
        lat=lat,
        lng=lng,
        radius_km=radius_km,
        date_from=date_from,
        date_to=date_to,
        teachers=split_csv(teachers),
        musicians=split_csv(musicians),
        event_types=split_csv(event_types),
        skill_levels=split_csv(skill_levels),
        price_min=price_min,
        price_max=price_max,
        city=city,
        country=country,
        featured=featured,
        sort=sort,
        order=order,
        page=page,
        page_size=page_size if page_size is not None else search_service.settings.search_default_page_size,
        default_radius_km=search_service.settings.search_default_radius_km,
    )
    result, cache_hit = search_service.lookup(filters)

    processing_time = round((time.time() - start_time) * 1000, 2)  # ms
    response.headers["X-Search-Cache"] = "HIT" if cache_hit else "MISS"
    logger.debug("events/search took=%sms results=%d", processing_time, len(result.rows))
    return result


@router.get("/events/suggest", response_model=Suggestions)
def suggest_events(
    q: str = Query("", max_length=100, description="Partial search query"),
    limit: Optional[int] = Query(None, description="Suggestions per list, clamped to [1, 20]"),
    kind: str = Query("all", description="all, events, teachers, musicians or locations"),
    suggestion_service: SuggestionService = Depends(get_suggestion_service),
):
    """Autocomplete suggestions across events, teachers, musicians and locations"""
    return suggestion_service.suggest(q, limit=limit, kind=kind)
