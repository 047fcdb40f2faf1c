from __future__ import annotations

from datetime import datetime
from typing import Callable, List

from db.repository import repository_session
from models import ReadRecord
from .errors import NotFoundError
from .scheduler import utcnow


def mark_read(user_id: int, document_id: int, now: Callable[[], datetime] = utcnow,
              session_factory: Callable = repository_session) -> ReadRecord:
    """Record that the user finished a document; repeat calls keep the first completion time."""
    with session_factory() as repository:
        if repository.get_user(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")
        if repository.get_document(document_id) is None:
            raise NotFoundError(f"Document {document_id} not found")
        return repository.upsert_read_record(user_id, document_id, now())


def list_read(user_id: int, session_factory: Callable = repository_session) -> List[ReadRecord]:
    with session_factory() as repository:
        if repository.get_user(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")
        return repository.list_read_records(user_id)
