from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from db.database import get_db
from db.repository import SQLiteKnowledgeRepository
from models import DifficultWord, MarkDifficult, Word
from utils.errors import NotFoundError, PersistenceError
from utils.scheduler import DifficultyScheduler
from .deps import get_scheduler, get_search_limits

router = APIRouter()

# Plain def: marking takes a blocking per-pair lock
@router.post("/difficult")
def mark_word_as_difficult(payload: MarkDifficult, scheduler: DifficultyScheduler = Depends(get_scheduler)):
    """Mark a word as "too hard" so it sleeps for sleep_days."""
    try:
        sleep_until = scheduler.mark_difficult(payload.user_id, payload.word_id, payload.sleep_days)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to mark word as difficult")
    return {"success": True, "message": "Word marked as difficult", "sleep_until": sleep_until.isoformat()}

@router.get("/difficult", response_model=List[DifficultWord])
def get_difficult_words(user_id: int, scheduler: DifficultyScheduler = Depends(get_scheduler)):
    """Difficult words for a user, each flagged active or sleeping."""
    try:
        return scheduler.list_difficult(user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

@router.get("/difficult/due", response_model=List[DifficultWord])
def get_due_difficult_words(user_id: int, scheduler: DifficultyScheduler = Depends(get_scheduler)):
    try:
        return scheduler.due_words(user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

@router.delete("/difficult/{word_id}")
def remove_from_difficult(word_id: int, user_id: int, scheduler: DifficultyScheduler = Depends(get_scheduler)):
    try:
        scheduler.remove_difficult(user_id, word_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Word not found in difficult list")
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to remove word from difficult list")
    return {"success": True, "message": "Word removed from difficult list"}

@router.get("/search", response_model=List[Word])
async def search_vocabulary(
    query: Optional[str] = None,
    max_level: Optional[int] = Query(None, ge=0),
    conn = Depends(get_db),
    limits: dict = Depends(get_search_limits),
):
    """Search words by text, reading or meaning, optionally capped at a level."""
    return SQLiteKnowledgeRepository(conn).search_words(query, max_level, limits["word_limit"])

@router.get("/all", response_model=List[Word])
async def get_all_vocabulary(conn = Depends(get_db), limits: dict = Depends(get_search_limits)):
    return SQLiteKnowledgeRepository(conn).search_words(None, None, limits["list_limit"])

@router.get("/{word_id}", response_model=Word)
async def get_word(word_id: int, conn = Depends(get_db)):
    word = SQLiteKnowledgeRepository(conn).get_word(word_id)
    if not word:
        raise HTTPException(status_code=404, detail="Word not found")
    return word
