from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from media_search.core.database import Base

MEDIA_TYPES = ("image", "audio", "video")


class SearchRecord(Base):
    """A past search made by an authenticated user. Rows are never updated."""
    __tablename__ = "searches"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    query = Column(String(255), nullable=False)
    media_type = Column(Enum(*MEDIA_TYPES, name="media_type"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="searches")

    # History is always read per user, newest first
    __table_args__ = (Index("ix_searches_user_id_created_at", "user_id", "created_at"),)
