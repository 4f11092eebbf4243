from typing import Optional
from pydantic import BaseModel, Field


class ConversationIn(BaseModel):
    title: Optional[str] = Field(None, max_length=255)

class TurnIn(BaseModel):
    message: str = Field(..., min_length=1)
