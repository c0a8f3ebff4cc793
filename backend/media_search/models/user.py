from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from media_search.core.database import Base


class User(Base):
    """
    User model representing application users.

    Stores authentication credentials and profile information.
    Passwords are stored as bcrypt hashes and never leave the service layer.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    # Email is unique and indexed for fast lookups during login
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    # is_active allows soft-deleting users without removing data
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    searches = relationship(
        "SearchRecord", back_populates="user", cascade="all, delete-orphan")
