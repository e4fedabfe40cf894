"""
Tracking event model
Append-only: one row per tracking request, never updated by the pipeline
"""
import uuid

from sqlalchemy import Column, String, Integer, DateTime, Float, ForeignKey, JSON, Text
from sqlalchemy.sql import func

from core.database import Base

EVENT_SOURCE_INTERNAL = "internal_tracking"


class EventTracking(Base):
    __tablename__ = "event_trackings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    pixel_id = Column(String(36), ForeignKey("pixels.id", ondelete="CASCADE"), nullable=False, index=True)

    # Event
    event_type = Column(String(64), nullable=False, default="view", index=True)
    block_id = Column(Integer, nullable=True, index=True)
    duration = Column(Integer, nullable=True)  # seconds
    # "metadata" is reserved on declarative classes
    event_metadata = Column("metadata", JSON, nullable=True)
    value = Column(Float, nullable=True)
    currency = Column(String(3), nullable=True)

    # Request info
    user_agent = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)  # IPv6 max length
    language = Column(String(35), nullable=True)

    # Geolocation
    country = Column(String(64), nullable=True)
    region = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)

    # Device info
    device_type = Column(String(20), nullable=True)  # mobile, tablet, desktop, ...
    os = Column(String(50), nullable=True)
    browser = Column(String(50), nullable=True)

    source = Column(String(50), nullable=False, default=EVENT_SOURCE_INTERNAL)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "pixel_id": self.pixel_id,
            "event_type": self.event_type,
            "block_id": self.block_id,
            "duration": self.duration,
            "metadata": self.event_metadata or {},
            "value": self.value,
            "currency": self.currency,
            "ip_address": self.ip_address,
            "country": self.country,
            "region": self.region,
            "city": self.city,
            "device_type": self.device_type,
            "os": self.os,
            "browser": self.browser,
            "language": self.language,
            "source": self.source,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
