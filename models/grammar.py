from pydantic import BaseModel, Field, validator
from typing import List

from .word import Example, clean_examples

class GrammarCandidate(BaseModel):
    """One grammar point as proposed by the analysis response."""
    rule: str
    explanation: str
    common_mistakes: str = Field("", alias="commonMistakes")
    similar_patterns: str = Field("", alias="similarPatterns")
    examples: List[Example] = []

    class Config:
        populate_by_name = True

    @validator('rule', 'explanation')
    def require_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Field cannot be empty")
        return v

    @validator('common_mistakes', 'similar_patterns', pre=True)
    def default_blank(cls, v):
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v

    @validator('examples', pre=True)
    def drop_bad_examples(cls, v):
        return clean_examples(v)


class GrammarRule(BaseModel):
    id: int
    rule: str
    level: int
    explanation: str
    common_mistakes: str = ""
    similar_patterns: str = ""
    examples: List[Example] = []

    class Config:
        from_attributes = True
