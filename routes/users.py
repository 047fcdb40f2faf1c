from typing import List
from fastapi import APIRouter, HTTPException, status
from db.repository import repository_session
from models import ReadRecord, User, UserCreate
from utils.errors import NotFoundError
from utils.reading import list_read

router = APIRouter()

@router.post("", response_model=User, status_code=status.HTTP_201_CREATED)
def create_user(user: UserCreate):
    if not user.username or not user.username.strip():
        raise HTTPException(status_code=400, detail="Username is required")
    with repository_session() as repository:
        if repository.find_user_by_username(user.username):
            raise HTTPException(status_code=400, detail="User with this name already exists")
        return repository.create_user(user)

@router.get("/{user_id}/read", response_model=List[ReadRecord])
def get_read_stories(user_id: int):
    """Stories the user has completed, newest first."""
    try:
        return list_read(user_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
