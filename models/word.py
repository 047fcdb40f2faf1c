from pydantic import BaseModel, validator
from typing import List

class Example(BaseModel):
    sentence: str
    translation: str = ""

    @validator('sentence')
    def validate_sentence(cls, v):
        # Kept verbatim; duplicate detection compares sentences exactly
        if not v.strip():
            raise ValueError("Example sentence is required")
        return v

    @validator('translation', pre=True)
    def default_translation(cls, v):
        return v or ""


def clean_examples(raw) -> list:
    """Keep only example entries that carry a usable sentence."""
    if not isinstance(raw, list):
        return []
    kept = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        sentence = item.get("sentence")
        if not isinstance(sentence, str) or not sentence.strip():
            continue
        translation = item.get("translation")
        kept.append({
            "sentence": sentence,
            "translation": translation if isinstance(translation, str) else "",
        })
    return kept


class WordCandidate(BaseModel):
    """One vocabulary entry as proposed by the analysis response."""
    word: str
    reading: str
    meaning: str
    notes: str = ""
    examples: List[Example] = []

    @validator('word', 'reading', 'meaning')
    def require_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Field cannot be empty")
        return v

    @validator('notes', pre=True)
    def default_notes(cls, v):
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v

    @validator('examples', pre=True)
    def drop_bad_examples(cls, v):
        return clean_examples(v)


class Word(BaseModel):
    id: int
    text: str
    reading: str
    meaning: str
    level: int
    notes: str = ""
    examples: List[Example] = []

    class Config:
        from_attributes = True
