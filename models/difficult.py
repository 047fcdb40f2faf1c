from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from .word import Word

class MarkDifficult(BaseModel):
    user_id: int
    word_id: int
    sleep_days: Optional[int] = Field(None, ge=0)  # None: the configured default

class DifficultWord(BaseModel):
    """A difficult entry joined with its word, as shown to the learner."""
    word: Word
    sleep_until: datetime
    active: bool
    sleep_remaining: int
