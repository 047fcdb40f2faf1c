from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from db.database import get_db
from db.repository import SQLiteKnowledgeRepository, repository_session
from models import Document, DocumentCreate, ReadRecord, ReviewResult
from utils.errors import NotFoundError, PersistenceError
from utils.pipeline import ExtractionPipeline
from utils.reading import mark_read
from .deps import get_pipeline

router = APIRouter()

@router.post("", response_model=Document, status_code=status.HTTP_201_CREATED)
def create_story(document: DocumentCreate):
    """Register a generated story so it can be analyzed."""
    if not document.text or not document.text.strip():
        raise HTTPException(status_code=400, detail="Story text is required")
    try:
        with repository_session() as repository:
            if document.user_id is not None and repository.get_user(document.user_id) is None:
                raise HTTPException(status_code=404, detail="User not found")
            return repository.create_document(document)
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to save story")

@router.get("", response_model=List[Document])
def list_stories(user_id: int):
    """Stories owned by a user, newest first."""
    with repository_session() as repository:
        if repository.get_user(user_id) is None:
            raise HTTPException(status_code=404, detail="User not found")
        return repository.list_documents_for_user(user_id)

@router.get("/{document_id}", response_model=Document)
async def get_story(document_id: int, conn = Depends(get_db)):
    document = SQLiteKnowledgeRepository(conn).get_document(document_id)
    if not document:
        raise HTTPException(status_code=404, detail="Story not found")
    return document

# Plain def: runs in the threadpool because the analysis blocks on the model call
@router.get("/{document_id}/review", response_model=ReviewResult)
def get_story_review(
    document_id: int,
    force: bool = Query(False, description="Re-analyze even if a review is stored"),
    pipeline: ExtractionPipeline = Depends(get_pipeline),
):
    """Vocabulary and grammar breakdown for a story, analyzing it on first request."""
    try:
        return pipeline.get_review(document_id, force=force)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Story not found")
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Error retrieving story review data")

@router.get("/{document_id}/state")
async def get_story_state(document_id: int, pipeline: ExtractionPipeline = Depends(get_pipeline)):
    try:
        state = pipeline.state(document_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Story not found")
    return {"document_id": document_id, "state": state.value}

@router.post("/{document_id}/read", response_model=ReadRecord)
def mark_story_read(document_id: int, user_id: int):
    """Mark a story as completed by the user."""
    try:
        return mark_read(user_id, document_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to mark story as read")
