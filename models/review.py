from pydantic import BaseModel
from typing import List, Optional
from enum import Enum

from .word import Word, WordCandidate
from .grammar import GrammarRule, GrammarCandidate

class AnalysisState(str, Enum):
    NOT_ANALYZED = "not_analyzed"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"

class AnalysisPayload(BaseModel):
    """Validated analysis response: the candidates that survived validation."""
    vocabulary: List[WordCandidate] = []
    grammar: List[GrammarCandidate] = []
    dropped_vocabulary: int = 0
    dropped_grammar: int = 0

class ReviewResult(BaseModel):
    document_id: int
    words: List[Word] = []
    rules: List[GrammarRule] = []
    state: AnalysisState = AnalysisState.NOT_ANALYZED
    available: bool = True
    error: Optional[str] = None
