"""Knowledge repository: the persistent store behind the extraction engine.

`KnowledgeRepository` is the narrow interface the engine talks to.
`SQLiteKnowledgeRepository` implements it over one sqlite3 connection, so a
repository obtained from `repository_session()` sees, and commits, exactly one
transaction.
"""
from __future__ import annotations

import json
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from models import Document, DocumentCreate, Example, GrammarRule, ReadRecord, User, UserCreate, Word
from .database import transaction


def to_iso(moment: datetime) -> str:
    """Serialize an aware datetime as a fixed-width UTC ISO string (sortable as text)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: str) -> datetime:
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _dump_examples(examples: Iterable[Example]) -> str:
    return json.dumps([example.model_dump() for example in examples], ensure_ascii=False)


def _load_examples(raw: Optional[str]) -> List[Example]:
    if not raw:
        return []
    return [Example(**item) for item in json.loads(raw)]


def _row_to_word(row) -> Word:
    return Word(
        id=row["id"],
        text=row["text"],
        reading=row["reading"],
        meaning=row["meaning"],
        level=row["level"],
        notes=row["notes"] or "",
        examples=_load_examples(row["examples_json"]),
    )


def _row_to_grammar(row) -> GrammarRule:
    return GrammarRule(
        id=row["id"],
        rule=row["rule"],
        level=row["level"],
        explanation=row["explanation"],
        common_mistakes=row["common_mistakes"] or "",
        similar_patterns=row["similar_patterns"] or "",
        examples=_load_examples(row["examples_json"]),
    )


def _row_to_document(row) -> Document:
    return Document(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"] or "",
        text=row["text"],
        level=row["level"],
        grammar_level=row["grammar_level"],
        analyzed_at=row["analyzed_at"],
    )


class KnowledgeRepository(ABC):
    """Persistent store for words, grammar rules, documents and per-user state."""

    # Vocabulary
    @abstractmethod
    def find_word_by_key(self, text: str, reading: str) -> Optional[Word]:
        pass

    @abstractmethod
    def get_word(self, word_id: int) -> Optional[Word]:
        pass

    @abstractmethod
    def create_word(
        self,
        text: str,
        reading: str,
        meaning: str,
        level: int,
        notes: str = "",
        examples: Sequence[Example] = (),
    ) -> Word:
        pass

    @abstractmethod
    def update_word(self, word: Word) -> None:
        pass

    # Grammar
    @abstractmethod
    def find_grammar_by_rule(self, rule: str) -> Optional[GrammarRule]:
        pass

    @abstractmethod
    def create_grammar(
        self,
        rule: str,
        level: int,
        explanation: str,
        common_mistakes: str = "",
        similar_patterns: str = "",
        examples: Sequence[Example] = (),
    ) -> GrammarRule:
        pass

    @abstractmethod
    def update_grammar(self, grammar: GrammarRule) -> None:
        pass

    # Documents and associations
    @abstractmethod
    def get_document(self, document_id: int) -> Optional[Document]:
        pass

    @abstractmethod
    def create_document(self, document: DocumentCreate, legacy_id: Optional[str] = None) -> Document:
        pass

    @abstractmethod
    def find_document_by_legacy_id(self, legacy_id: str) -> Optional[Document]:
        pass

    @abstractmethod
    def list_documents_for_user(self, user_id: int) -> List[Document]:
        """Documents owned by the user, newest first."""
        pass

    @abstractmethod
    def list_associations_for_document(self, document_id: int) -> Tuple[List[Word], List[GrammarRule]]:
        pass

    @abstractmethod
    def replace_associations_for_document(
        self, document_id: int, word_ids: Sequence[int], rule_ids: Sequence[int]
    ) -> None:
        pass

    # Users
    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]:
        pass

    @abstractmethod
    def find_user_by_username(self, username: str) -> Optional[User]:
        pass

    @abstractmethod
    def create_user(self, user: UserCreate) -> User:
        pass

    # Difficult words
    @abstractmethod
    def upsert_difficult_entry(self, user_id: int, word_id: int, sleep_until: datetime) -> None:
        pass

    @abstractmethod
    def list_difficult_entries(self, user_id: int) -> List[Tuple[Word, datetime]]:
        pass

    @abstractmethod
    def delete_difficult_entry(self, user_id: int, word_id: int) -> bool:
        pass

    # Reading log
    @abstractmethod
    def upsert_read_record(self, user_id: int, document_id: int, completed_at: datetime) -> ReadRecord:
        pass

    @abstractmethod
    def list_read_records(self, user_id: int) -> List[ReadRecord]:
        pass

    # Search
    @abstractmethod
    def search_words(self, query: Optional[str], max_level: Optional[int], limit: int) -> List[Word]:
        pass

    @abstractmethod
    def search_grammar(self, query: Optional[str], max_level: Optional[int], limit: int) -> List[GrammarRule]:
        pass


class SQLiteKnowledgeRepository(KnowledgeRepository):
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def find_word_by_key(self, text: str, reading: str) -> Optional[Word]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM words WHERE text = ? AND reading = ?", (text, reading))
        row = cursor.fetchone()
        return _row_to_word(row) if row else None

    def get_word(self, word_id: int) -> Optional[Word]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM words WHERE id = ?", (word_id,))
        row = cursor.fetchone()
        return _row_to_word(row) if row else None

    def create_word(self, text, reading, meaning, level, notes="", examples=()):
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO words (text, reading, meaning, level, notes, examples_json)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (text, reading, meaning, level, notes, _dump_examples(examples)),
        )
        return Word(
            id=cursor.lastrowid,
            text=text,
            reading=reading,
            meaning=meaning,
            level=level,
            notes=notes,
            examples=list(examples),
        )

    def update_word(self, word: Word) -> None:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            UPDATE words
            SET meaning = ?, level = ?, notes = ?, examples_json = ?, updated_at = datetime('now')
            WHERE id = ?
            """,
            (word.meaning, word.level, word.notes, _dump_examples(word.examples), word.id),
        )

    def find_grammar_by_rule(self, rule: str) -> Optional[GrammarRule]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM grammar_rules WHERE rule = ?", (rule,))
        row = cursor.fetchone()
        return _row_to_grammar(row) if row else None

    def create_grammar(self, rule, level, explanation, common_mistakes="", similar_patterns="", examples=()):
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO grammar_rules (rule, level, explanation, common_mistakes, similar_patterns, examples_json)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (rule, level, explanation, common_mistakes, similar_patterns, _dump_examples(examples)),
        )
        return GrammarRule(
            id=cursor.lastrowid,
            rule=rule,
            level=level,
            explanation=explanation,
            common_mistakes=common_mistakes,
            similar_patterns=similar_patterns,
            examples=list(examples),
        )

    def update_grammar(self, grammar: GrammarRule) -> None:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            UPDATE grammar_rules
            SET level = ?, explanation = ?, common_mistakes = ?, similar_patterns = ?,
                examples_json = ?, updated_at = datetime('now')
            WHERE id = ?
            """,
            (
                grammar.level,
                grammar.explanation,
                grammar.common_mistakes,
                grammar.similar_patterns,
                _dump_examples(grammar.examples),
                grammar.id,
            ),
        )

    def get_document(self, document_id: int) -> Optional[Document]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM documents WHERE id = ?", (document_id,))
        row = cursor.fetchone()
        return _row_to_document(row) if row else None

    def create_document(self, document: DocumentCreate, legacy_id: Optional[str] = None) -> Document:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO documents (user_id, title, text, level, grammar_level, legacy_id)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (document.user_id, document.title, document.text, document.level, document.grammar_level, legacy_id),
        )
        return Document(id=cursor.lastrowid, **document.model_dump())

    def find_document_by_legacy_id(self, legacy_id: str) -> Optional[Document]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM documents WHERE legacy_id = ?", (legacy_id,))
        row = cursor.fetchone()
        return _row_to_document(row) if row else None

    def list_documents_for_user(self, user_id: int) -> List[Document]:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM documents WHERE user_id = ? ORDER BY created_at DESC, id DESC",
            (user_id,),
        )
        return [_row_to_document(row) for row in cursor.fetchall()]

    def list_associations_for_document(self, document_id: int) -> Tuple[List[Word], List[GrammarRule]]:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT w.* FROM document_words dw
            JOIN words w ON w.id = dw.word_id
            WHERE dw.document_id = ?
            ORDER BY dw.position, w.id
            """,
            (document_id,),
        )
        words = [_row_to_word(row) for row in cursor.fetchall()]
        cursor.execute(
            """
            SELECT g.* FROM document_grammar dg
            JOIN grammar_rules g ON g.id = dg.rule_id
            WHERE dg.document_id = ?
            ORDER BY dg.position, g.id
            """,
            (document_id,),
        )
        rules = [_row_to_grammar(row) for row in cursor.fetchall()]
        return words, rules

    def replace_associations_for_document(self, document_id, word_ids, rule_ids) -> None:
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM document_words WHERE document_id = ?", (document_id,))
        cursor.execute("DELETE FROM document_grammar WHERE document_id = ?", (document_id,))
        cursor.executemany(
            "INSERT INTO document_words (document_id, word_id, frequency, position) VALUES (?, ?, 1, ?)",
            [(document_id, word_id, position) for position, word_id in enumerate(word_ids)],
        )
        cursor.executemany(
            "INSERT INTO document_grammar (document_id, rule_id, position) VALUES (?, ?, ?)",
            [(document_id, rule_id, position) for position, rule_id in enumerate(rule_ids)],
        )
        cursor.execute(
            "UPDATE documents SET analyzed_at = ? WHERE id = ?",
            (to_iso(datetime.now(timezone.utc)), document_id),
        )

    def get_user(self, user_id: int) -> Optional[User]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT id, username, vocab_level, grammar_level FROM users WHERE id = ?", (user_id,))
        row = cursor.fetchone()
        if not row:
            return None
        return User(**dict(row))

    def find_user_by_username(self, username: str) -> Optional[User]:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT id, username, vocab_level, grammar_level FROM users WHERE username = ?",
            (username.strip(),),
        )
        row = cursor.fetchone()
        return User(**dict(row)) if row else None

    def create_user(self, user: UserCreate) -> User:
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT INTO users (username, vocab_level, grammar_level) VALUES (?, ?, ?)",
            (user.username.strip(), user.vocab_level, user.grammar_level),
        )
        return User(id=cursor.lastrowid, username=user.username.strip(),
                    vocab_level=user.vocab_level, grammar_level=user.grammar_level)

    def upsert_difficult_entry(self, user_id: int, word_id: int, sleep_until: datetime) -> None:
        cursor = self.conn.cursor()
        cursor.execute(
            "DELETE FROM difficult_words WHERE user_id = ? AND word_id = ?",
            (user_id, word_id),
        )
        cursor.execute(
            "INSERT INTO difficult_words (user_id, word_id, sleep_until) VALUES (?, ?, ?)",
            (user_id, word_id, to_iso(sleep_until)),
        )

    def list_difficult_entries(self, user_id: int) -> List[Tuple[Word, datetime]]:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT w.*, d.sleep_until AS sleep_until FROM difficult_words d
            JOIN words w ON w.id = d.word_id
            WHERE d.user_id = ?
            ORDER BY d.sleep_until ASC, w.id ASC
            """,
            (user_id,),
        )
        return [(_row_to_word(row), from_iso(row["sleep_until"])) for row in cursor.fetchall()]

    def delete_difficult_entry(self, user_id: int, word_id: int) -> bool:
        cursor = self.conn.cursor()
        cursor.execute(
            "DELETE FROM difficult_words WHERE user_id = ? AND word_id = ?",
            (user_id, word_id),
        )
        return cursor.rowcount > 0

    def upsert_read_record(self, user_id: int, document_id: int, completed_at: datetime) -> ReadRecord:
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT OR IGNORE INTO read_documents (user_id, document_id, completed_at) VALUES (?, ?, ?)",
            (user_id, document_id, to_iso(completed_at)),
        )
        cursor.execute(
            "SELECT user_id, document_id, completed_at FROM read_documents WHERE user_id = ? AND document_id = ?",
            (user_id, document_id),
        )
        return ReadRecord(**dict(cursor.fetchone()))

    def list_read_records(self, user_id: int) -> List[ReadRecord]:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT user_id, document_id, completed_at FROM read_documents
            WHERE user_id = ?
            ORDER BY completed_at DESC, document_id DESC
            """,
            (user_id,),
        )
        return [ReadRecord(**dict(row)) for row in cursor.fetchall()]

    def search_words(self, query, max_level, limit) -> List[Word]:
        clauses = []
        params: list = []
        if query:
            pattern = f"%{query.strip()}%"
            clauses.append("(text LIKE ? OR reading LIKE ? OR meaning LIKE ?)")
            params.extend([pattern, pattern, pattern])
        if max_level is not None:
            clauses.append("level <= ?")
            params.append(max_level)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        cursor = self.conn.cursor()
        cursor.execute(f"SELECT * FROM words {where} ORDER BY level ASC, id ASC LIMIT ?", (*params, limit))
        return [_row_to_word(row) for row in cursor.fetchall()]

    def search_grammar(self, query, max_level, limit) -> List[GrammarRule]:
        clauses = []
        params: list = []
        if query:
            pattern = f"%{query.strip()}%"
            clauses.append("(rule LIKE ? OR explanation LIKE ?)")
            params.extend([pattern, pattern])
        if max_level is not None:
            clauses.append("level <= ?")
            params.append(max_level)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        cursor = self.conn.cursor()
        cursor.execute(f"SELECT * FROM grammar_rules {where} ORDER BY level ASC, id ASC LIMIT ?", (*params, limit))
        return [_row_to_grammar(row) for row in cursor.fetchall()]


@contextmanager
def repository_session(db_path: Optional[Path] = None):
    """Yield a repository bound to one transaction; commits on success, rolls back on error."""
    with transaction(db_path) as conn:
        yield SQLiteKnowledgeRepository(conn)
