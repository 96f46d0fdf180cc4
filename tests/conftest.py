from datetime import datetime

import pytest
from sqlalchemy.orm import Session

from apps.core.config import Settings
from apps.core.db import Base, build_engine, build_session_factory
from apps.core.store import StoreHandle
from apps.events.models import Event, EventPrice, EventTag, Musician, Teacher, Venue

PARIS = (48.8566, 2.3522)
VERSAILLES = (48.8049, 2.1204)


def _event(name, start, venue=None, tags=(), prices=(), **fields):
    event = Event(
        name=name,
        start_date=start,
        venue=venue,
        city=fields.pop("city", venue.city if venue else None),
        country=fields.pop("country", venue.country if venue else None),
        featured=fields.pop("featured", False),
        save_count=fields.pop("save_count", 0),
        attendance_count=fields.pop("attendance_count", 0),
        review_count=fields.pop("review_count", 0),
        **fields,
    )
    event.tags = [EventTag(tag=tag) for tag in tags]
    event.prices = [EventPrice(amount=amount, currency="EUR", available=available) for amount, available in prices]
    return event


def seed(db: Session) -> None:
    paris = Venue(name="Le Bal Blues", address="1 Rue de la Danse", city="Paris", country="France",
                  lat=PARIS[0], lng=PARIS[1])
    versailles = Venue(name="Versailles Hall", city="Versailles", country="France",
                       lat=VERSAILLES[0], lng=VERSAILLES[1])
    berlin = Venue(name="Berlin Tanzhaus", city="Berlin", country="Germany", lat=52.52, lng=13.405)
    madrid = Venue(name="Madrid Sala", city="Madrid", country="Spain", lat=40.4168, lng=-3.7038)
    london = Venue(name="Unmapped Club", city="London", country="UK", lat=None, lng=None)

    dan = Teacher(name="Dan Repsch", bio="Blues dance teacher from Paris", specialties_csv="blues,musicality")
    ruth = Teacher(name="Ruth Evans", bio="Fusion and lindy instructor", specialties_csv="fusion, lindy")
    sam = Teacher(name="Old School Sam", bio="Retired blues teacher", specialties_csv="blues")
    trio = Musician(name="Blue Moon Trio", bio="Slow blues band", genres_csv="blues,soul")
    orchestra = Musician(name="Lindy Hoppers Orchestra", bio="Big band swing", genres_csv="swing,jazz")

    espanish = _event(
        "ESpanish", datetime(2030, 3, 1, 19), madrid, style="Blues",
        end_date=datetime(2030, 3, 3, 23), save_count=10, attendance_count=50,
        tags=("festival", "intermediate"), prices=((120.0, True),),
    )
    espanish.teachers = [ruth]
    nights = _event(
        "ESpanish Nights", datetime(2030, 4, 1, 20), madrid, style="Fusion", featured=True,
        save_count=30, attendance_count=10,
        tags=("workshop", "beginner"), prices=((80.0, True), (40.0, False)),
    )
    nights.musicians = [orchestra]
    camp = _event(
        "Summer ESpanish Camp", datetime(2030, 5, 1, 10), berlin, style="Blues", save_count=5,
        tags=("workshop", "advanced"),
    )
    weekend = _event(
        "Paris Blues Weekend", datetime(2030, 2, 10, 18), paris, style="Blues, Fusion", featured=True,
        description="A blues weekend in the heart of the city",
        end_date=datetime(2030, 2, 12, 23), save_count=100, attendance_count=300,
        tags=("festival", "intermediate"), prices=((150.0, True), (90.0, True)),
    )
    weekend.teachers = [dan]
    weekend.musicians = [trio]
    social = _event(
        "Versailles Social", datetime(2030, 6, 15, 20), versailles, style="Lindy",
        description="Swing social with live band", save_count=20, attendance_count=40,
        tags=("social", "beginner"), prices=((15.0, True),),
    )
    social.musicians = [trio]
    jam = _event(
        "Old Town Blues Jam", datetime(2020, 1, 10, 21), None, style="Blues",
        city="Bluesville", country="USA",
    )
    jam.teachers = [dan, sam]

    db.add_all([paris, versailles, berlin, madrid, london, dan, ruth, sam, trio, orchestra,
                espanish, nights, camp, weekend, social, jam])
    db.commit()


@pytest.fixture
def database_url(tmp_path):
    # a file database so every worker thread gets its own connection
    return f"sqlite:///{tmp_path / 'events.db'}"


@pytest.fixture
def settings(database_url):
    return Settings(database_url=database_url, store_timeout_s=5.0, search_cache_ttl_s=120)


@pytest.fixture
def engine(database_url):
    engine = build_engine(database_url)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    factory = build_session_factory(engine)
    with factory() as db:
        seed(db)
    return factory


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def store(session_factory, settings):
    handle = StoreHandle(session_factory, default_timeout_s=settings.store_timeout_s, max_workers=4)
    yield handle
    handle.close()
