"""Pydantic response models shared by the services and the HTTP layer"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class VenueSummary(BaseModel):
    id: int
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class PriceInfo(BaseModel):
    amount: float
    currency: str
    type: Optional[str] = None
    available: bool = True


class EventRow(BaseModel):
    """One search hit: an event projected with its computed score."""
    id: int
    name: str
    description: Optional[str] = None
    style: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    city: Optional[str] = None
    country: Optional[str] = None
    featured: bool = False
    tags: List[str] = Field(default_factory=list)
    venue: Optional[VenueSummary] = None
    pricing: List[PriceInfo] = Field(default_factory=list)
    save_count: int = 0
    attendance_count: int = 0
    review_count: int = 0
    relevance_score: float = 0.0
    distance_km: Optional[float] = None


class SearchMeta(BaseModel):
    query: Optional[str] = None
    sort_by: str
    sort_order: str
    filters: Dict[str, Any] = Field(default_factory=dict)
    distance_fallback: bool = False  # distance requested without a center point


class SearchPage(BaseModel):
    """Paginated search envelope."""
    rows: List[EventRow]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_prev: bool
    search_meta: SearchMeta


class Suggestions(BaseModel):
    events: List[str] = Field(default_factory=list)
    teachers: List[str] = Field(default_factory=list)
    musicians: List[str] = Field(default_factory=list)
    locations: List[str] = Field(default_factory=list)


class PersonRow(BaseModel):
    id: int
    name: str
    bio: Optional[str] = None
    tags: List[str] = Field(default_factory=list)  # specialties or genres


class DirectoryPage(BaseModel):
    rows: List[PersonRow]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_prev: bool
