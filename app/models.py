#!/usr/bin/env python3

from sqlalchemy import Column, String, Integer, Text, DateTime, UniqueConstraint, func
from app.database import Base

class Favorite(Base):
    """A daycare a signed-in parent has starred."""

    __tablename__ = "favorites"
    __table_args__ = (UniqueConstraint("user_id", "daycare_id", name="uq_favorite_user_daycare"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    daycare_id = Column(String, nullable=False)
    # Name captured when starred, so the list renders without the remote API
    daycare_name = Column(String)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class ContactLog(Base):
    """A parent's note about contacting a daycare."""

    __tablename__ = "contact_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    daycare_id = Column(String, nullable=False)
    daycare_name = Column(String)
    contact_method = Column(String, nullable=False, default="phone")  # phone / email / visit / other
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class SearchSnapshot(Base):
    """Durable copy of a member's last settled search (query string)."""

    __tablename__ = "search_snapshots"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, unique=True, index=True, nullable=False)
    query_string = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
