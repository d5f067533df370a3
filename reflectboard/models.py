"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For Pydantic request/response schemas, see schemas.py.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from reflectboard.storage import Base, DEFAULT_AUTHOR, DEFAULT_CATEGORY


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(Base):
    """
    A user-submitted message with a denormalized reflection counter.

    Table: messages
    reflection_count mirrors the number of rows in reflections for this message.
    """
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    text = Column(Text, nullable=False)
    category = Column(String(50), nullable=False, default=DEFAULT_CATEGORY)
    author = Column(String(100), nullable=False, default=DEFAULT_AUTHOR)
    reflection_count = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    reflections = relationship(
        "Reflection",
        back_populates="message",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Reflection(Base):
    """
    Ledger row: one voter's reflection on one message.

    Table: reflections
    Unique (message_id, voter_identity) enforces at most one per voter per message.
    """
    __tablename__ = "reflections"
    __table_args__ = (
        UniqueConstraint("message_id", "voter_identity", name="uq_reflections_message_voter"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(
        Integer,
        ForeignKey("messages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    voter_identity = Column(String(45), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    message = relationship("Message", back_populates="reflections")
