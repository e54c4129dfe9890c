"""
Database models - SQLite (or any SQLAlchemy URL) for users, trips and locations
"""
import os
import uuid
from datetime import datetime

from sqlalchemy import create_engine, Column, String, Integer, Float, DateTime, Text, ForeignKey
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from sqlalchemy.pool import StaticPool

Base = declarative_base()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./trip_planner.db")


def generate_id():
    return str(uuid.uuid4())[:8]


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=generate_id)
    email = Column(String, unique=True, index=True)
    name = Column(String)
    password_hash = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)

    trips = relationship("Trip", back_populates="user", cascade="all, delete-orphan")


class Trip(Base):
    __tablename__ = "trips"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, ForeignKey("users.id"), index=True)
    name = Column(String)
    description = Column(Text, default="")
    image_url = Column(String, nullable=True)
    start_date = Column(String)  # YYYY-MM-DD
    end_date = Column(String)  # YYYY-MM-DD
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="trips")
    locations = relationship(
        "Location",
        back_populates="trip",
        cascade="all, delete-orphan",
        order_by="Location.order",
    )


class Location(Base):
    __tablename__ = "locations"

    id = Column(String, primary_key=True, default=generate_id)
    trip_id = Column(String, ForeignKey("trips.id"), index=True)
    title = Column(String)
    latitude = Column(Float)
    longitude = Column(Float)
    description = Column(Text, nullable=True)
    order = Column(Integer, default=0)  # position in the trip's route
    created_at = Column(DateTime, default=datetime.utcnow)

    trip = relationship("Trip", back_populates="locations")


def _make_engine(url):
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session sees an empty db
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url)


engine = _make_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine)


def init_db():
    """Create tables if they don't exist yet"""
    Base.metadata.create_all(bind=engine)
    return engine


def get_db():
    return SessionLocal()
