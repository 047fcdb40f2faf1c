from __future__ import annotations

from typing import Iterable, List, Tuple

from db.repository import KnowledgeRepository
from models import GrammarRule, Word


def _unique_ids(records: Iterable) -> List[int]:
    seen = set()
    ids: List[int] = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        ids.append(record.id)
    return ids


class AssociationIndex:
    """Links a document to the words and grammar rules found in it."""

    def __init__(self, repository: KnowledgeRepository):
        self.repository = repository

    def replace_associations(self, document_id: int, words: Iterable[Word], rules: Iterable[GrammarRule]) -> None:
        """Discard the document's previous links and write one per distinct word and rule.

        Must run in the same transaction as the merges that produced words and rules.
        """
        self.repository.replace_associations_for_document(
            document_id, _unique_ids(words), _unique_ids(rules)
        )

    def associations(self, document_id: int) -> Tuple[List[Word], List[GrammarRule]]:
        return self.repository.list_associations_for_document(document_id)
