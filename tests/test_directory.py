import pytest

from apps.core.errors import ValidationError
from apps.events.services.directory import DirectoryService


@pytest.fixture
def directory(store, settings):
    return DirectoryService(store, settings=settings)


def _names(page):
    return [row.name for row in page.rows]


def test_query_matches_name_or_bio(directory):
    assert _names(directory.search_teachers("teacher")) == ["Dan Repsch", "Old School Sam"]
    assert _names(directory.search_teachers("RUTH")) == ["Ruth Evans"]


def test_short_query_is_rejected(directory):
    with pytest.raises(ValidationError):
        directory.search_teachers("t")
    with pytest.raises(ValidationError):
        directory.search_musicians(None)


def test_specialties_are_or_matched(directory):
    assert _names(directory.search_teachers("ruth", specialties=["tango", "lindy"])) == ["Ruth Evans"]
    assert _names(directory.search_teachers("ruth", specialties=["blues"])) == []


def test_location_matches_event_venues(directory):
    assert _names(directory.search_teachers("instructor", location="madrid")) == ["Ruth Evans"]
    assert _names(directory.search_teachers("instructor", location="Paris")) == []


def test_upcoming_events_filter(directory):
    page = directory.search_teachers("teacher", has_upcoming_events=True)
    assert _names(page) == ["Dan Repsch"]


def test_musicians_by_genre(directory):
    page = directory.search_musicians("band", genres=["soul"])
    assert _names(page) == ["Blue Moon Trio"]
    assert page.rows[0].tags == ["blues", "soul"]


def test_directory_pagination(directory):
    first = directory.search_teachers("teacher", page=1, page_size=1)
    assert _names(first) == ["Dan Repsch"]
    assert (first.total_count, first.total_pages, first.has_next, first.has_prev) == (2, 2, True, False)
    second = directory.search_teachers("teacher", page=2, page_size=1)
    assert _names(second) == ["Old School Sam"]
    assert (second.has_next, second.has_prev) == (False, True)


def test_name_sort_descending(directory):
    assert _names(directory.search_teachers("teacher", sort_order="desc")) == ["Old School Sam", "Dan Repsch"]


def test_relevance_sort_puts_name_hits_before_bio_hits(directory):
    # "re" is in Dan Repsch's name but only in Old School Sam's bio ("Retired")
    assert _names(directory.search_teachers("re", sort_by="relevance")) == ["Dan Repsch", "Old School Sam"]
    assert _names(directory.search_teachers("re", sort_by="relevance", sort_order="asc")) == [
        "Old School Sam", "Dan Repsch",
    ]


def test_unknown_sort_options_are_rejected(directory):
    with pytest.raises(ValidationError):
        directory.search_teachers("teacher", sort_by="upcoming_events")
    with pytest.raises(ValidationError):
        directory.search_musicians("band", sort_order="sideways")
