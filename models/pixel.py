"""
Tracking pixel model
One pixel per vCard; events are recorded against it
"""
import uuid
from typing import Optional

from sqlalchemy import Column, String, Integer, DateTime, Boolean, ForeignKey, Text
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from core.config import API_URL
from core.database import Base


class Pixel(Base):
    __tablename__ = "pixels"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    vcard_id = Column(Integer, ForeignKey("vcards.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)

    is_active = Column(Boolean, nullable=False, default=True)
    is_blocked = Column(Boolean, nullable=False, default=False)

    # Meta Conversions API account; token is Fernet-encrypted (utils.crypto)
    meta_pixel_id = Column(String(64), nullable=True)
    meta_access_token_encrypted = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def tracking_url(self) -> str:
        return f"{API_URL}/pixel/{self.id}/track"

    @property
    def is_trackable(self) -> bool:
        return bool(self.is_active) and not bool(self.is_blocked)


def find_trackable_pixel(db: Session, pixel_id: str) -> Optional[Pixel]:
    """Return the pixel only if it exists, is active and is not blocked."""
    pixel_id = (pixel_id or "").strip()
    if not pixel_id:
        return None
    pixel = db.query(Pixel).filter(Pixel.id == pixel_id).first()
    if not pixel or not pixel.is_trackable:
        return None
    return pixel
