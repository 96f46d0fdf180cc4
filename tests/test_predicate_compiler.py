from datetime import datetime

from apps.events.models import Event
from apps.events.schemas.filters import build_filters
from apps.events.schemas.predicates import (
    And, ExistsIn, OneOf, Or, Range, TextMatch, TextMode, WeightedScore,
)
from apps.events.services.predicate_compiler import PredicateCompiler
from apps.events.services.relevance import (
    COUNTRY_CONTAINS, EVENT_NAME_EXACT, RelevanceScorer,
)
from apps.events.services.sql_lowering import SqlLowering


def _names(db, predicate):
    where = SqlLowering().lower(predicate)
    return sorted(name for (name,) in db.query(Event.name).filter(where).all())


def test_empty_filters_compile_to_nothing():
    compiled = PredicateCompiler().compile(build_filters())
    assert compiled.facets == And(())
    assert compiled.score is None


def test_facets_compile_to_predicates():
    compiled = PredicateCompiler().compile(build_filters(
        city="Paris",
        featured=True,
        teachers=["12", "Dan"],
        date_from=datetime(2030, 1, 1),
        price_max=100,
    ))
    items = compiled.facets.items
    assert TextMatch("event.city", "Paris") in items
    assert OneOf("event.featured", (True,)) in items
    assert Range("event.start_date", low=datetime(2030, 1, 1)) in items
    assert ExistsIn("event.prices", Range("price.amount", low=None, high=100)) in items
    assert ExistsIn("event.teachers", Or((
        OneOf("teacher.id", (12,)),
        TextMatch("teacher.name", "12"),
        TextMatch("teacher.name", "Dan"),
    ))) in items


def test_score_tiers_are_ordered_by_weight():
    score = RelevanceScorer().build("blues")
    assert isinstance(score, WeightedScore)
    weights = [weight for weight, _ in score.ordered()]
    assert weights == sorted(weights, reverse=True)
    assert weights[0] == EVENT_NAME_EXACT
    assert weights[-1] == COUNTRY_CONTAINS
    assert score.ordered()[0][1] == TextMatch("event.name", "blues", TextMode.EXACT)


def test_no_query_no_score():
    assert RelevanceScorer().build(None) is None
    assert RelevanceScorer().build("") is None


def test_empty_and_matches_everything_empty_or_nothing(db):
    assert len(_names(db, And(()))) == 6
    assert _names(db, Or(())) == []


def test_text_modes(db):
    assert _names(db, TextMatch("event.name", "espanish", TextMode.EXACT)) == ["ESpanish"]
    assert _names(db, TextMatch("event.name", "espanish", TextMode.PREFIX)) == ["ESpanish", "ESpanish Nights"]
    assert _names(db, TextMatch("event.name", "ESPANISH")) == ["ESpanish", "ESpanish Nights", "Summer ESpanish Camp"]


def test_exact_match_folds_both_sides_in_the_database():
    sql = str(SqlLowering().lower(TextMatch("event.name", "Été", TextMode.EXACT)))
    assert sql.count("lower(") == 2


def test_like_wildcards_are_literal(db):
    assert _names(db, TextMatch("event.name", "%")) == []
    assert _names(db, TextMatch("event.name", "_")) == []


def test_tag_values_match_case_insensitively(db):
    predicate = ExistsIn("event.tags", OneOf("tag.tag", ("FESTIVAL",), case_insensitive=True))
    assert _names(db, predicate) == ["ESpanish", "Paris Blues Weekend"]


def test_open_end_date_counts_as_start_date(db):
    # the jam has no end date; it ends the day it starts
    assert _names(db, Range("event.end_date", high=datetime(2021, 1, 1))) == ["Old Town Blues Jam"]


def test_single_valued_relation(db):
    predicate = ExistsIn("event.venue", TextMatch("venue.country", "france"))
    assert _names(db, predicate) == ["Paris Blues Weekend", "Versailles Social"]
