from .word import Word, WordCandidate, Example
from .grammar import GrammarRule, GrammarCandidate
from .document import Document, DocumentCreate, User, UserCreate, ReadRecord
from .review import AnalysisState, AnalysisPayload, ReviewResult
from .difficult import MarkDifficult, DifficultWord

__all__ = [
    'Word', 'WordCandidate', 'Example',
    'GrammarRule', 'GrammarCandidate',
    'Document', 'DocumentCreate', 'User', 'UserCreate', 'ReadRecord',
    'AnalysisState', 'AnalysisPayload', 'ReviewResult',
    'MarkDifficult', 'DifficultWord',
]
