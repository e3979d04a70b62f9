"""
Thread database model.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Boolean, Index
from sqlalchemy.orm import relationship
import uuid

from ..database import Base
from ..utils.time import utcnow


class Thread(Base):
    """One conversation; the whole message log is a JSON array in `messages`."""

    __tablename__ = "threads"

    # Composite index for listing a user's threads ordered by recency
    __table_args__ = (
        Index('ix_threads_user_updated', 'user_id', 'updated_at'),
    )

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, index=True, nullable=False, default=lambda: str(uuid.uuid4()))
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    title = Column(String(200), nullable=False, default="New Conversation")
    messages = Column(Text, nullable=False, default="[]")

    # Provider that serves this thread and the model version it maps to
    llm_provider = Column(String(50), nullable=False, default="openai")
    llm_model_version = Column(String(100), nullable=True)

    public = Column(Boolean, nullable=False, default=False)

    # Bumped on every write, used for conditional updates
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="threads")
