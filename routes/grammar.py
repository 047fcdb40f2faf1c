from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from db.database import get_db
from db.repository import SQLiteKnowledgeRepository
from models import GrammarRule
from .deps import get_search_limits

router = APIRouter()

@router.get("/search", response_model=List[GrammarRule])
async def search_grammar(
    query: Optional[str] = None,
    max_level: Optional[int] = Query(None, ge=0),
    conn = Depends(get_db),
    limits: dict = Depends(get_search_limits),
):
    """Search grammar rules by rule text or explanation."""
    return SQLiteKnowledgeRepository(conn).search_grammar(query, max_level, limits["grammar_limit"])

@router.get("/all", response_model=List[GrammarRule])
async def get_all_grammar(conn = Depends(get_db), limits: dict = Depends(get_search_limits)):
    return SQLiteKnowledgeRepository(conn).search_grammar(None, None, limits["list_limit"])
