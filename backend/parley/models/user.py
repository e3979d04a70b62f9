"""
User database model.
"""

from sqlalchemy import Column, Integer, String, DateTime, Index
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.time import utcnow


class User(Base):
    """User account model, either a Google identity or a guest fingerprint."""

    __tablename__ = "users"

    __table_args__ = (
        Index('ix_users_oauth_id_type', 'oauth_id', 'oauth_type'),
    )

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(200), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    avatar_url = Column(String(500), nullable=True)

    # External identity: Google subject id or guest fingerprint
    oauth_id = Column(String(128), unique=True, index=True, nullable=False)
    oauth_type = Column(String(20), nullable=False, default="google")  # "google", "guest"

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    threads = relationship("Thread", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_guest(self) -> bool:
        return self.oauth_type == "guest"
