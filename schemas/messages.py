"""Pydantic schemas for messages and turns."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from models.messages import MessageRole
from schemas.threads import ThreadResponse


class MessageCreate(BaseModel):
    """Schema for sending a user message on an existing thread."""
    content: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    """Schema for a stored message."""
    id: int
    thread_id: str
    role: MessageRole
    content: str
    created_at: datetime
    
    model_config = ConfigDict(from_attributes=True)


class TurnResponse(BaseModel):
    """Schema for the outcome of one user turn."""
    thread: ThreadResponse
    user_message: MessageResponse
    reply: str = Field(description="Model reply, or a synthetic error string that was not stored")
    reply_message: Optional[MessageResponse] = None
    error: bool = False
