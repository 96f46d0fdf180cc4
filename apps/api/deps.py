"""Request dependencies: services bound to the application's store handle."""

from fastapi import Request

from apps.core.store import StoreHandle
from apps.events.services.directory import DirectoryService
from apps.events.services.search import SearchService
from apps.events.services.suggestions import SuggestionService


def get_store(request: Request) -> StoreHandle:
    return request.app.state.store


def get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


def get_suggestion_service(request: Request) -> SuggestionService:
    return request.app.state.suggestion_service


def get_directory_service(request: Request) -> DirectoryService:
    return request.app.state.directory_service
