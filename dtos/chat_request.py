from pydantic import BaseModel, Field
from typing import Optional

class ChatRequest(BaseModel):
    thread_id: Optional[str] = Field(default=None, description="Existing thread; a new one is started when missing or unknown")
    message: str = Field(..., min_length=1, description="User message for this turn")
