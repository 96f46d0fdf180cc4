from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Float, ForeignKey, Integer, String, Table, Text,
)
from sqlalchemy.orm import relationship
from apps.core.db import Base


event_teachers = Table(
    "event_teachers",
    Base.metadata,
    Column("event_id", Integer, ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
    Column("teacher_id", Integer, ForeignKey("teachers.id", ondelete="CASCADE"), primary_key=True),
)

event_musicians = Table(
    "event_musicians",
    Base.metadata,
    Column("event_id", Integer, ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
    Column("musician_id", Integer, ForeignKey("musicians.id", ondelete="CASCADE"), primary_key=True),
)


class Venue(Base):
    __tablename__ = "venues"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text)
    address = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    country = Column(Text, nullable=True)

    lat = Column(Float, CheckConstraint('lat >= -90 AND lat <= 90'), nullable=True)
    lng = Column(Float, CheckConstraint('lng >= -180 AND lng <= 180'), nullable=True)

    events = relationship("Event", back_populates="venue")

    @classmethod
    def filter_valid_coordinates(cls, query):
        """Filter query to only include venues with valid coordinates"""
        return query.filter(
            cls.lat.isnot(None),
            cls.lng.isnot(None),
            cls.lat >= -90,
            cls.lat <= 90,
            cls.lng >= -180,
            cls.lng <= 180
        )


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    style = Column(Text, nullable=True)  # free-form style line, e.g. "Blues, Fusion"

    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=True)  # open end = single-day event

    # Denormalized location copied from the venue at ingestion time
    city = Column(Text, nullable=True)
    country = Column(Text, nullable=True)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=True, index=True)

    featured = Column(Boolean, nullable=False, default=False)

    # Popularity counters maintained by the write side
    save_count = Column(Integer, nullable=False, default=0)
    attendance_count = Column(Integer, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)

    venue = relationship("Venue", back_populates="events")
    tags = relationship("EventTag", back_populates="event", cascade="all, delete-orphan")
    prices = relationship("EventPrice", back_populates="event", cascade="all, delete-orphan")
    teachers = relationship("Teacher", secondary=event_teachers, back_populates="events")
    musicians = relationship("Musician", secondary=event_musicians, back_populates="events")


class EventTag(Base):
    """Tag-like multi-valued attribute: event types, skill levels, styles."""
    __tablename__ = "event_tags"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    tag = Column(String(100), nullable=False)

    event = relationship("Event", back_populates="tags")


class EventPrice(Base):
    __tablename__ = "event_prices"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="EUR")
    type = Column(Text, nullable=True)  # full pass, party pass, ...
    available = Column(Boolean, nullable=False, default=True)

    event = relationship("Event", back_populates="prices")


class Teacher(Base):
    __tablename__ = "teachers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    bio = Column(Text, nullable=True)
    specialties_csv = Column(Text, nullable=True)  # simple comma-separated list (blues,musicality)

    events = relationship("Event", secondary=event_teachers, back_populates="teachers")


class Musician(Base):
    __tablename__ = "musicians"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    bio = Column(Text, nullable=True)
    genres_csv = Column(Text, nullable=True)

    events = relationship("Event", secondary=event_musicians, back_populates="musicians")
