#!/usr/bin/env python3
"""
Event search orchestration.

A request is compiled to predicates, the proximity set is resolved when a center point
is given, and the assembler counts, sorts and pages the result. The store work runs as
one timed call; successful pages are kept in a short-lived read-through cache.
"""

import logging
import time
from dataclasses import replace
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from apps.core.config import Settings, settings as default_settings
from apps.core.store import StoreHandle
from apps.events.schemas.filters import SearchFilters
from apps.events.schemas.results import SearchPage
from apps.events.services.geo import GeoProximityResolver
from apps.events.services.predicate_compiler import PredicateCompiler
from apps.events.services.result_assembler import ResultAssembler, clamp_page
from apps.events.services.search_cache import SearchCache

logger = logging.getLogger(__name__)


class SearchService:
    """Event search over the injected store handle."""

    def __init__(
        self,
        store: StoreHandle,
        settings: Optional[Settings] = None,
        compiler: Optional[PredicateCompiler] = None,
        resolver: Optional[GeoProximityResolver] = None,
        assembler: Optional[ResultAssembler] = None,
        cache: Optional[SearchCache] = None,
    ):
        self.store = store
        self.settings = settings or default_settings
        self.compiler = compiler or PredicateCompiler()
        self.resolver = resolver or GeoProximityResolver()
        self.assembler = assembler or ResultAssembler(
            default_page_size=self.settings.search_default_page_size,
            max_page_size=self.settings.search_max_page_size,
        )
        self.cache = cache if cache is not None else SearchCache(
            ttl_s=self.settings.search_cache_ttl_s,
            max_entries=self.settings.search_cache_max_entries,
        )

    def search(self, filters: SearchFilters) -> SearchPage:
        page, _ = self.lookup(filters)
        return page

    def lookup(self, filters: SearchFilters) -> Tuple[SearchPage, bool]:
        """Return the page and whether it was served from the cache."""
        filters = self._clamped(filters)
        key = SearchCache.make_key("search", filters)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Search cache HIT for query=%r", filters.query)
            return cached, True

        logger.debug("Search cache MISS for query=%r", filters.query)
        start_time = time.time()
        # StoreError / StoreTimeoutError propagate; failures are never cached
        result = self.store.run(lambda db: self._execute(db, filters), label="search")
        self.cache.set(key, result)
        logger.info(
            "Search query=%r total=%d took=%.1fms",
            filters.query, result.total_count, (time.time() - start_time) * 1000,
        )
        return result, False

    def _execute(self, db: Session, filters: SearchFilters) -> SearchPage:
        compiled = self.compiler.compile(filters)
        proximity = self.resolver.resolve(db, filters.geo) if filters.geo else None
        return self.assembler.assemble(db, filters, compiled, proximity)

    def _clamped(self, filters: SearchFilters) -> SearchFilters:
        page, page_size = clamp_page(
            filters.page, filters.page_size,
            self.settings.search_default_page_size, self.settings.search_max_page_size,
        )
        if page == filters.page and page_size == filters.page_size:
            return filters
        return replace(filters, page=page, page_size=page_size)


def create_search_service(store: StoreHandle, settings: Optional[Settings] = None) -> SearchService:
    """Create search service instance"""
    return SearchService(store, settings=settings)
