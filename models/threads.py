"""Thread model for conversation management."""
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp; the application, not the database, owns the clock."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Thread(Base):
    """
    SQLAlchemy model for conversation threads.
    
    Each thread owns an ordered list of messages. ``updated_at`` tracks the
    last message append and is what the thread list is sorted by.
    """
    __tablename__ = "threads"
    
    id = Column(String(64), primary_key=True, index=True)
    title = Column(String(255), nullable=False, default="New Conversation")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    
    messages = relationship(
        "Message",
        back_populates="thread",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.id",
    )

    def __repr__(self) -> str:
        return f"<Thread id={self.id!r} title={self.title!r}>"
