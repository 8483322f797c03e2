"""Pydantic schemas for thread-related requests and responses."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class ThreadCreate(BaseModel):
    """Schema for creating a thread."""
    id: Optional[str] = Field(default=None, min_length=1, max_length=64)
    title: Optional[str] = Field(default=None, max_length=255)


class ThreadUpdate(BaseModel):
    """Schema for renaming a thread."""
    title: str = Field(..., max_length=255)


class ThreadResponse(BaseModel):
    """Schema for thread responses."""
    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    
    model_config = ConfigDict(from_attributes=True)
