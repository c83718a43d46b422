"""
Inventory Models

Tables backing the planning grid:
- Property: top-level owner, optionally linked to a Channex property
- RoomType: bookable category, owns availability and rate plans
- RatePlan: pricing strategy scoped to one room type
- RoomTypeAvailability: one row per (room type, date)
- RatePlanRate: one row per (rate plan, date)

Availability and rate rows use integer autoincrement ids so that 0 can act as
the "no backing record yet" sentinel in the grid.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Date, DateTime, Integer, Numeric, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from ..database import Base


class Property(Base):
    __tablename__ = "properties"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)

    # Channex-specific identifier (set once the property is pushed to Channex)
    channex_property_id = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    room_types = relationship("RoomType", back_populates="property", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Property {self.title}>"


class RoomType(Base):
    __tablename__ = "room_types"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    count_of_rooms = Column(Integer, default=1)
    channex_room_type_id = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    property = relationship("Property", back_populates="room_types")
    rate_plans = relationship("RatePlan", back_populates="room_type", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<RoomType {self.title} rooms={self.count_of_rooms}>"


class RatePlan(Base):
    __tablename__ = "rate_plans"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)
    room_type_id = Column(String(36), ForeignKey("room_types.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    code = Column(String(50), nullable=True)
    channex_rate_plan_id = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    room_type = relationship("RoomType", back_populates="rate_plans")

    def __repr__(self):
        return f"<RatePlan {self.title} room_type={self.room_type_id}>"


class RoomTypeAvailability(Base):
    """Availability for a room type on one date."""
    __tablename__ = "room_type_availability"

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)
    room_type_id = Column(String(36), ForeignKey("room_types.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    availability = Column(Integer, nullable=False, default=0)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        # One entry per room type per date
        UniqueConstraint('room_type_id', 'date', name='uq_availability_room_type_date'),
        Index('ix_availability_room_type_date', 'room_type_id', 'date'),
    )

    def __repr__(self):
        return f"<RoomTypeAvailability {self.room_type_id} {self.date} {self.availability}>"


class RatePlanRate(Base):
    """Price for a rate plan on one date."""
    __tablename__ = "rate_plan_rates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)
    rate_plan_id = Column(String(36), ForeignKey("rate_plans.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    rate = Column(Numeric(10, 2), nullable=False, default=0)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        # One entry per rate plan per date
        UniqueConstraint('rate_plan_id', 'date', name='uq_rate_rate_plan_date'),
        Index('ix_rate_rate_plan_date', 'rate_plan_id', 'date'),
    )

    def __repr__(self):
        return f"<RatePlanRate {self.rate_plan_id} {self.date} {self.rate}>"
