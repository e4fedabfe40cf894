"""
vCard profile model
Only the columns the tracking pipeline reads; profile content is managed elsewhere
"""
from typing import Optional

from sqlalchemy import Column, String, Integer, DateTime, Boolean
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from core.database import Base


class VCard(Base):
    __tablename__ = "vcards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    url = Column(String(255), nullable=True, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


def get_vcard(db: Session, vcard_id: Optional[int]) -> Optional[VCard]:
    """Owning profile of a pixel, or None if it is gone or disabled."""
    if vcard_id is None:
        return None
    vcard = db.query(VCard).filter(VCard.id == vcard_id).first()
    if not vcard or not vcard.is_active:
        return None
    return vcard
