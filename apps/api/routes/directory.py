from typing import Optional

from fastapi import APIRouter, Depends, Query

from apps.api.deps import get_directory_service
from apps.events.schemas.filters import split_csv
from apps.events.schemas.results import DirectoryPage
from apps.events.services.directory import DirectoryService

router = APIRouter()


@router.get("/teachers/search", response_model=DirectoryPage)
def search_teachers(
    q: str = Query(..., description="Name or bio text, at least 2 characters"),
    specialties: Optional[str] = Query(None, description="Comma-separated specialties"),
    location: Optional[str] = Query(None, description="City or country of an event venue"),
    has_upcoming_events: Optional[bool] = Query(None, alias="hasUpcomingEvents"),
    page: int = Query(1),
    page_size: Optional[int] = Query(None),
    sort_by: str = Query("name", alias="sortBy", description="name or relevance"),
    sort_order: Optional[str] = Query(None, alias="sortOrder", description="asc or desc"),
    directory_service: DirectoryService = Depends(get_directory_service),
):
    return directory_service.search_teachers(
        q,
        specialties=split_csv(specialties),
        location=location,
        has_upcoming_events=has_upcoming_events,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/musicians/search", response_model=DirectoryPage)
def search_musicians(
    q: str = Query(..., description="Name or bio text, at least 2 characters"),
    genres: Optional[str] = Query(None, description="Comma-separated genres"),
    location: Optional[str] = Query(None, description="City or country of an event venue"),
    has_upcoming_events: Optional[bool] = Query(None, alias="hasUpcomingEvents"),
    page: int = Query(1),
    page_size: Optional[int] = Query(None),
    sort_by: str = Query("name", alias="sortBy", description="name or relevance"),
    sort_order: Optional[str] = Query(None, alias="sortOrder", description="asc or desc"),
    directory_service: DirectoryService = Depends(get_directory_service),
):
    return directory_service.search_musicians(
        q,
        genres=split_csv(genres),
        location=location,
        has_upcoming_events=has_upcoming_events,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_order=sort_order,
    )
