"""Import a JSON export of the legacy document store.

Legacy records carry opaque string ids ("_id"). Entities are migrated in
dependency order: users, vocabulary and grammar first, then stories, then the
records that point at them (story links, difficult words, read stories). Each
step records old id -> new id so later steps can translate references; a
reference that cannot be translated skips only that row. Imported stories keep
their legacy id, so importing the same export again reuses them.

The whole import is one transaction. A storage failure rolls everything back,
so a failed import leaves the database untouched and can simply be re-run.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import pydantic

from db.repository import KnowledgeRepository, from_iso, repository_session
from models import DocumentCreate, GrammarCandidate, UserCreate, WordCandidate
from .merge import KnowledgeMerger
from .scheduler import utcnow

logger = logging.getLogger(__name__)

ENTITY_TYPES = ("users", "vocabulary", "grammar", "stories", "story_links", "difficult_words", "read_stories")


def _legacy_id(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        # Extended JSON, e.g. {"$oid": "..."}
        value = value.get("$oid")
    if value is None:
        return None
    return str(value)


def _parse_moment(value: Any, fallback: datetime) -> datetime:
    if isinstance(value, dict):
        value = value.get("$date")
    if not isinstance(value, str) or not value:
        return fallback
    try:
        return from_iso(value)
    except ValueError:
        return fallback


def _int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class ExportImporter:
    def __init__(self, repository: KnowledgeRepository, now: Callable[[], datetime] = utcnow):
        self.repository = repository
        self.merger = KnowledgeMerger(repository)
        self.now = now
        self.id_map: Dict[str, Dict[str, int]] = {"users": {}, "vocabulary": {}, "grammar": {}, "stories": {}}
        self.report: Dict[str, Dict[str, int]] = {
            name: {"migrated": 0, "skipped": 0} for name in ENTITY_TYPES
        }

    def _count(self, entity: str, migrated: bool) -> None:
        self.report[entity]["migrated" if migrated else "skipped"] += 1

    def migrate_users(self, users) -> None:
        for record in users:
            legacy_id = _legacy_id(record.get("_id"))
            username = record.get("username")
            if not legacy_id or not isinstance(username, str) or not username.strip():
                self._count("users", False)
                continue
            user = self.repository.find_user_by_username(username)
            if user is None:
                user = self.repository.create_user(UserCreate(
                    username=username,
                    vocab_level=_int(record.get("waniKaniLevel"), 1),
                    grammar_level=_int(record.get("genkiChapter"), 0),
                ))
            self.id_map["users"][legacy_id] = user.id
            self._count("users", True)

    def migrate_vocabulary(self, vocabulary) -> None:
        for record in vocabulary:
            legacy_id = _legacy_id(record.get("_id"))
            try:
                candidate = WordCandidate.model_validate({
                    "word": record.get("word"),
                    "reading": record.get("reading"),
                    "meaning": record.get("meaning"),
                    "notes": record.get("notes"),
                    "examples": record.get("exampleSentences"),
                })
            except pydantic.ValidationError as exc:
                logger.warning("Skipping vocabulary %s: %s", legacy_id, exc.errors())
                self._count("vocabulary", False)
                continue
            word = self.merger.merge_word(candidate, _int(record.get("kanjiLevel"), 1))
            if legacy_id:
                self.id_map["vocabulary"][legacy_id] = word.id
            self._count("vocabulary", True)

    def migrate_grammar(self, grammar) -> None:
        for record in grammar:
            legacy_id = _legacy_id(record.get("_id"))
            try:
                candidate = GrammarCandidate.model_validate({
                    "rule": record.get("rule"),
                    "explanation": record.get("explanation"),
                    "commonMistakes": record.get("commonMistakes"),
                    "similarPatterns": record.get("similarPatterns"),
                    "examples": record.get("examples"),
                })
            except pydantic.ValidationError as exc:
                logger.warning("Skipping grammar %s: %s", legacy_id, exc.errors())
                self._count("grammar", False)
                continue
            rule = self.merger.merge_grammar(candidate, _int(record.get("genkiChapter"), 0))
            if legacy_id:
                self.id_map["grammar"][legacy_id] = rule.id
            self._count("grammar", True)

    def migrate_stories(self, stories) -> None:
        for record in stories:
            legacy_id = _legacy_id(record.get("_id"))
            owner = self.id_map["users"].get(_legacy_id(record.get("user")) or "")
            content = record.get("content")
            if not legacy_id or owner is None or not isinstance(content, str) or not content.strip():
                self._count("stories", False)
                continue
            document = self.repository.find_document_by_legacy_id(legacy_id)
            if document is None:
                document = self.repository.create_document(DocumentCreate(
                    user_id=owner,
                    title=record.get("title") or "",
                    text=content,
                    level=_int(record.get("kanjiLevel"), 1),
                    grammar_level=_int(record.get("grammarLevel"), 0),
                ), legacy_id=legacy_id)
            self.id_map["stories"][legacy_id] = document.id
            self._count("stories", True)

    def migrate_story_links(self, stories) -> None:
        for record in stories:
            document_id = self.id_map["stories"].get(_legacy_id(record.get("_id")) or "")
            if document_id is None:
                continue
            word_ids = []
            for link in record.get("vocabulary") or []:
                ref = link.get("wordId") if isinstance(link, dict) else link
                word_id = self.id_map["vocabulary"].get(_legacy_id(ref) or "")
                if word_id is None:
                    self._count("story_links", False)
                    continue
                word_ids.append(word_id)
            rule_ids = []
            for ref in record.get("grammarPoints") or []:
                rule_id = self.id_map["grammar"].get(_legacy_id(ref) or "")
                if rule_id is None:
                    self._count("story_links", False)
                    continue
                rule_ids.append(rule_id)
            if not word_ids and not rule_ids:
                continue
            word_ids = list(dict.fromkeys(word_ids))
            rule_ids = list(dict.fromkeys(rule_ids))
            self.repository.replace_associations_for_document(document_id, word_ids, rule_ids)
            self.report["story_links"]["migrated"] += len(word_ids) + len(rule_ids)

    def migrate_user_state(self, users) -> None:
        for record in users:
            user_id = self.id_map["users"].get(_legacy_id(record.get("_id")) or "")
            if user_id is None:
                continue
            for entry in record.get("difficultWords") or []:
                word_id = self.id_map["vocabulary"].get(_legacy_id(entry.get("wordId")) or "")
                if word_id is None:
                    self._count("difficult_words", False)
                    continue
                sleep_until = _parse_moment(entry.get("sleepUntil"), self.now())
                self.repository.upsert_difficult_entry(user_id, word_id, sleep_until)
                self._count("difficult_words", True)
            for entry in record.get("readStories") or []:
                document_id = self.id_map["stories"].get(_legacy_id(entry.get("storyId")) or "")
                if document_id is None:
                    self._count("read_stories", False)
                    continue
                completed_at = _parse_moment(entry.get("completedAt"), self.now())
                self.repository.upsert_read_record(user_id, document_id, completed_at)
                self._count("read_stories", True)

    def run(self, payload: Dict[str, Any]) -> Dict[str, Dict[str, int]]:
        users = payload.get("users") or []
        stories = payload.get("stories") or []
        self.migrate_users(users)
        self.migrate_vocabulary(payload.get("vocabulary") or [])
        self.migrate_grammar(payload.get("grammar") or [])
        self.migrate_stories(stories)
        self.migrate_story_links(stories)
        self.migrate_user_state(users)
        return self.report


def import_export(payload: Dict[str, Any], session_factory: Callable = repository_session,
                  now: Callable[[], datetime] = utcnow) -> Dict[str, Dict[str, int]]:
    """Import a legacy export in one transaction and return per-entity counts."""
    with session_factory() as repository:
        report = ExportImporter(repository, now=now).run(payload)
    for entity, counts in report.items():
        logger.info("Imported %s: %d migrated, %d skipped", entity, counts["migrated"], counts["skipped"])
    return report


def import_export_file(path: Path, session_factory: Callable = repository_session) -> Dict[str, Dict[str, int]]:
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    return import_export(payload, session_factory=session_factory)
