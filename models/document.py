from pydantic import BaseModel
from typing import Optional

class DocumentBase(BaseModel):
    text: str
    title: str = ""
    level: int = 1
    grammar_level: int = 0
    user_id: Optional[int] = None

class DocumentCreate(DocumentBase):
    pass

class Document(DocumentBase):
    id: int
    analyzed_at: Optional[str] = None  # ISO datetime

    class Config:
        from_attributes = True


class UserBase(BaseModel):
    username: str
    vocab_level: int = 1
    grammar_level: int = 0

class UserCreate(UserBase):
    pass

class User(UserBase):
    id: int

    class Config:
        from_attributes = True


class ReadRecord(BaseModel):
    user_id: int
    document_id: int
    completed_at: str  # ISO datetime
