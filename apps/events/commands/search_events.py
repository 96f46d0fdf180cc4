#!/usr/bin/env python3
"""
Search events (or fetch suggestions) from the command line.
Usage: python -m apps.events.commands.search_events "blues" [--lat 48.85 --lng 2.35 --radius-km 25] [--sort date] [--suggest]
"""

import argparse
import json
import logging
import sys

from apps.core.config import settings
from apps.core.db import build_engine, build_session_factory, resolve_database_url
from apps.core.errors import SearchError
from apps.core.store import StoreHandle
from apps.events.schemas.filters import build_filters, split_csv
from apps.events.services.search import create_search_service
from apps.events.services.suggestions import KINDS, SuggestionService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Search dance events")
    parser.add_argument("query", nargs="?", default=None, help="Free-text query")
    parser.add_argument("--lat", type=float)
    parser.add_argument("--lng", type=float)
    parser.add_argument("--radius-km", type=float)
    parser.add_argument("--city")
    parser.add_argument("--country")
    parser.add_argument("--teachers", help="Comma-separated teacher ids or names")
    parser.add_argument("--musicians", help="Comma-separated musician ids or names")
    parser.add_argument("--event-types", help="Comma-separated event types")
    parser.add_argument("--skill-levels", help="Comma-separated skill levels")
    parser.add_argument("--price-min", type=float)
    parser.add_argument("--price-max", type=float)
    parser.add_argument("--featured", action="store_true", default=None)
    parser.add_argument("--sort", default="relevance", help="relevance, date, distance, popularity or price")
    parser.add_argument("--order", choices=["asc", "desc"])
    parser.add_argument("--page", type=int, default=1)
    parser.add_argument("--page-size", type=int, default=settings.search_default_page_size)
    parser.add_argument("--suggest", action="store_true", help="Print autocomplete suggestions instead")
    parser.add_argument("--kind", default="all", choices=KINDS, help="Suggestion kind")
    parser.add_argument("--limit", type=int, help="Suggestion limit")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    engine = build_engine(resolve_database_url(settings))
    store = StoreHandle(
        build_session_factory(engine),
        default_timeout_s=settings.store_timeout_s,
        max_workers=settings.store_max_workers,
    )
    try:
        if args.suggest:
            result = SuggestionService(store, settings).suggest(args.query, args.limit, args.kind)
        else:
            filters = build_filters(
                query=args.query,
                lat=args.lat,
                lng=args.lng,
                radius_km=args.radius_km,
                teachers=split_csv(args.teachers),
                musicians=split_csv(args.musicians),
                event_types=split_csv(args.event_types),
                skill_levels=split_csv(args.skill_levels),
                price_min=args.price_min,
                price_max=args.price_max,
                city=args.city,
                country=args.country,
                featured=args.featured,
                sort=args.sort,
                order=args.order,
                page=args.page,
                page_size=args.page_size,
                default_radius_km=settings.search_default_radius_km,
            )
            result = create_search_service(store, settings).search(filters)
    except SearchError as exc:
        logger.error("Search failed: %s", exc)
        return 1
    finally:
        store.close()
        engine.dispose()

    print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
