"""
Territory Risk Registry Database Models

SQLAlchemy ORM models for the codelists, the territory assessments and the
supporting identity / notification tables.
"""

from sqlalchemy import (
    Column, Integer, String, Float, DateTime, JSON, Text,
    Boolean, ForeignKey, Index
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

Base = declarative_base()


class Municipality(Base):
    """
    Municipality codelist.
    Loaded in bulk and edited by administrators.
    """
    __tablename__ = 'municipalities'

    code = Column(String(20), primary_key=True)  # e.g., "508012"
    name = Column(String(255), nullable=False)

    # Administrative hierarchy
    district = Column(String(255), default="")
    district_code = Column(String(20))
    region = Column(String(255), default="")
    region_code = Column(String(20))
    evid_code = Column(String(20))

    population = Column(Integer)
    latitude = Column(Float)
    longitude = Column(Float)

    territories = relationship("Territory", back_populates="municipality")

    __table_args__ = (
        Index('idx_municipalities_district', 'district'),
        Index('idx_municipalities_name', 'name'),
    )


class HazardEvent(Base):
    """Hazard ("crisis event") codelist."""
    __tablename__ = 'events'

    code = Column(String(20), primary_key=True)
    name_sk = Column(String(500), nullable=False)
    name_en = Column(String(500))
    category = Column(String(255))
    is_category = Column(Boolean, default=False)
    plan_type = Column(String(100))
    ministry = Column(String(255))
    parent_code = Column(String(20))
    description = Column(Text)

    territories = relationship("Territory", back_populates="event")


class Factor(Base):
    """Contributing (threatening) factor codelist."""
    __tablename__ = 'factors'

    id = Column(Integer, primary_key=True, autoincrement=True)
    order = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)

    territories = relationship("Territory", back_populates="factor")


class ProbabilityBand(Base):
    """
    Occurrence-probability codelist.
    `name` is the free-text interval label, `risk_level` the tier it maps to.
    """
    __tablename__ = 'probabilities'

    id = Column(Integer, primary_key=True, autoincrement=True)
    order = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    risk_level = Column(String(10))  # critical, high, medium, low

    __table_args__ = (
        Index('idx_probabilities_order', 'order'),
    )


class Territory(Base):
    """
    One analysed territory: a hazard assessment for a municipality,
    hazard event and factor combination.
    """
    __tablename__ = 'territories'

    id = Column(Integer, primary_key=True, autoincrement=True)
    municipality_code = Column(String(20), ForeignKey('municipalities.code'), nullable=False)
    event_code = Column(String(20), ForeignKey('events.code'), nullable=False)
    factor_id = Column(Integer, ForeignKey('factors.id'), nullable=False)

    risk_source = Column(Text, default="")
    probability = Column(String(255), default="")

    # Snapshot taken at write time; reads always re-classify `probability`
    risk_level = Column(String(10), default="low")

    endangered_population = Column(Integer, default=0)
    endangered_area = Column(Float, default=0.0)
    predicted_disruption = Column(Text, default="")

    source = Column(String(100), default="manual_entry")
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    municipality = relationship("Municipality", back_populates="territories")
    event = relationship("HazardEvent", back_populates="territories")
    factor = relationship("Factor", back_populates="territories")

    __table_args__ = (
        Index('idx_territories_municipality', 'municipality_code'),
        Index('idx_territories_event', 'event_code'),
        Index('idx_territories_created_at', 'created_at'),
    )


class UserRole(Base):
    """Role assignment for users of the hosted identity provider."""
    __tablename__ = 'user_roles'

    user_id = Column(String(64), primary_key=True)
    email = Column(String(255))
    role = Column(String(20), nullable=False, default="user")
    created_at = Column(DateTime, default=datetime.utcnow)


class Notification(Base):
    """Feed entry created when territories are added, edited or removed."""
    __tablename__ = 'notifications'

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(30), nullable=False)  # NEW_RISK, RISK_UPDATE, RISK_DELETED
    title = Column(String(255), nullable=False)
    message = Column(Text)
    details = Column('metadata', JSON)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
