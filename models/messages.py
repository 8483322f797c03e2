"""Message model for thread history."""
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
import enum

from .threads import Base, utcnow


class MessageRole(str, enum.Enum):
    """Closed set of message authors."""
    USER = "user"
    MODEL = "model"


class Message(Base):
    """
    SQLAlchemy model for a single chat message.
    
    Messages are append-only. ``id`` is the ordering key within a thread;
    ``created_at`` is kept for display.
    """
    __tablename__ = "messages"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    thread_id = Column(String(64), ForeignKey("threads.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(
        Enum(MessageRole, name="message_role", values_callable=lambda roles: [r.value for r in roles]),
        nullable=False,
    )
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    
    thread = relationship("Thread", back_populates="messages")
    
    # ids are never reused after a cascade delete
    __table_args__ = {"sqlite_autoincrement": True}

    def __repr__(self) -> str:
        return f"<Message id={self.id} thread_id={self.thread_id!r} role={self.role!r}>"
