"""Story analysis: collaborator call -> sanitize -> validate -> merge -> associate.

A document is NOT_ANALYZED until one analysis commits, ANALYZING while a call
for it is in flight, and ANALYZED once its associations are stored. Failed
analyses write nothing and can be retried any number of times.
"""
from __future__ import annotations

import logging
from typing import Callable, ContextManager, Optional

from db.repository import KnowledgeRepository, repository_session
from models import AnalysisState, Document, ReviewResult
from .associations import AssociationIndex
from .errors import AnalysisUnavailable, NotFoundError, ValidationError
from .merge import KnowledgeMerger
from .ollama import AnalysisRequester
from .sanitize import sanitize_response
from .singleflight import SingleFlight
from .validate import validate_response

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], ContextManager[KnowledgeRepository]]


class ExtractionPipeline:
    def __init__(
        self,
        requester: AnalysisRequester,
        session_factory: SessionFactory = repository_session,
        flights: Optional[SingleFlight] = None,
    ):
        self.requester = requester
        self.session_factory = session_factory
        self.flights = flights or SingleFlight()

    def _load_document(self, repository: KnowledgeRepository, document_id: int) -> Document:
        document = repository.get_document(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return document

    def _stored_review(self, repository: KnowledgeRepository, document_id: int) -> ReviewResult:
        words, rules = AssociationIndex(repository).associations(document_id)
        return ReviewResult(
            document_id=document_id,
            words=words,
            rules=rules,
            state=AnalysisState.ANALYZED,
        )

    def state(self, document_id: int) -> AnalysisState:
        if self.flights.in_flight(document_id):
            return AnalysisState.ANALYZING
        with self.session_factory() as repository:
            document = self._load_document(repository, document_id)
        return AnalysisState.ANALYZED if document.analyzed_at else AnalysisState.NOT_ANALYZED

    def get_review(self, document_id: int, force: bool = False) -> ReviewResult:
        """Return the words and grammar rules of a document, analysing it first if needed.

        Collaborator and validation failures come back as an empty result with
        available=False. NotFoundError and PersistenceError propagate.
        """
        with self.session_factory() as repository:
            document = self._load_document(repository, document_id)
            if document.analyzed_at and not force:
                return self._stored_review(repository, document_id)

        try:
            result, shared = self.flights.do(document_id, lambda: self._analyze(document_id, force))
        except (AnalysisUnavailable, ValidationError) as exc:
            logger.warning("Analysis of document %s unavailable: %s", document_id, exc)
            state = AnalysisState.ANALYZED if document.analyzed_at else AnalysisState.NOT_ANALYZED
            return ReviewResult(
                document_id=document_id,
                state=state,
                available=False,
                error=str(exc),
            )
        if shared:
            logger.debug("Served document %s from an in-flight analysis", document_id)
        return result

    def _analyze(self, document_id: int, force: bool) -> ReviewResult:
        with self.session_factory() as repository:
            document = self._load_document(repository, document_id)
            # Another leader may have finished between our check and acquiring the flight
            if document.analyzed_at and not force:
                return self._stored_review(repository, document_id)

        logger.info("Analyzing document %s", document_id)
        raw = self.requester.analyze(document.text, document.level, document.grammar_level)
        payload = validate_response(sanitize_response(raw))
        logger.info(
            "Document %s analysis returned %d vocabulary and %d grammar entries",
            document_id,
            len(payload.vocabulary),
            len(payload.grammar),
        )

        with self.session_factory() as repository:
            merger = KnowledgeMerger(repository)
            index = AssociationIndex(repository)
            words = [merger.merge_word(candidate, document.level) for candidate in payload.vocabulary]
            rules = [merger.merge_grammar(candidate, document.grammar_level) for candidate in payload.grammar]
            index.replace_associations(document_id, words, rules)
            return self._stored_review(repository, document_id)
