"""
SQLAlchemy ORM Models
"""

from sqlalchemy import Column, Integer, String, Boolean, Float, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship, declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

class User(Base):
    __tablename__ = 'users'

    user_id = Column(String, primary_key=True)
    email = Column(String, unique=True, nullable=False)
    subscription_status = Column(String, nullable=False, default='free')
    customer_id = Column(String)
    subscription_id = Column(String)
    preferred_language = Column(String, default='en')
    timezone = Column(String, default='America/Denver')
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    encounters = relationship("EncounterRecord", back_populates="user", cascade="all, delete-orphan")

class EncounterRecord(Base):
    __tablename__ = 'encounters'

    encounter_id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey('users.user_id'), nullable=False, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    encounter_type = Column(String, nullable=False)
    location = Column(String, default='Unknown location')
    latitude = Column(Float)
    longitude = Column(Float)
    accuracy = Column(Float)
    notes = Column(Text)
    recording_url = Column(String)
    recording_hash = Column(String)  # CID when the recording is pinned
    recording_durable = Column(Boolean, default=False)
    duration = Column(Integer)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime(timezone=True))

    # Relationships
    user = relationship("User", back_populates="encounters")
