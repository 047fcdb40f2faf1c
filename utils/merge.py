from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

from db.repository import KnowledgeRepository
from models import Example, GrammarCandidate, GrammarRule, Word, WordCandidate

logger = logging.getLogger(__name__)


def dedupe_examples(examples: Iterable[Example]) -> List[Example]:
    """Drop examples whose sentence already appeared earlier in the list."""
    seen = set()
    kept: List[Example] = []
    for example in examples:
        if example.sentence in seen:
            continue
        seen.add(example.sentence)
        kept.append(example)
    return kept


def merge_examples(stored: Sequence[Example], incoming: Iterable[Example]) -> List[Example]:
    """Append incoming examples with unseen sentences after the stored ones, order preserved."""
    return dedupe_examples([*stored, *incoming])


class KnowledgeMerger:
    """Lookup-or-create for words and grammar rules against a repository.

    Both merges only write when the stored record actually changes, so
    replaying the same candidates leaves the store untouched.
    """

    def __init__(self, repository: KnowledgeRepository):
        self.repository = repository

    def merge_word(self, candidate: WordCandidate, level: int) -> Word:
        existing = self.repository.find_word_by_key(candidate.word, candidate.reading)
        if existing is None:
            logger.debug("New word %s (%s)", candidate.word, candidate.reading)
            return self.repository.create_word(
                text=candidate.word,
                reading=candidate.reading,
                meaning=candidate.meaning,
                level=level,
                notes=candidate.notes,
                examples=dedupe_examples(candidate.examples),
            )

        examples = merge_examples(existing.examples, candidate.examples)
        notes = existing.notes
        if candidate.notes and candidate.notes != existing.notes:
            notes = candidate.notes
        if len(examples) == len(existing.examples) and notes == existing.notes:
            return existing

        merged = existing.model_copy(update={"examples": examples, "notes": notes})
        self.repository.update_word(merged)
        return merged

    def merge_grammar(self, candidate: GrammarCandidate, level: int) -> GrammarRule:
        existing = self.repository.find_grammar_by_rule(candidate.rule)
        if existing is None:
            logger.debug("New grammar rule %s", candidate.rule)
            return self.repository.create_grammar(
                rule=candidate.rule,
                level=level,
                explanation=candidate.explanation,
                common_mistakes=candidate.common_mistakes,
                similar_patterns=candidate.similar_patterns,
                examples=dedupe_examples(candidate.examples),
            )

        update = {}
        examples = merge_examples(existing.examples, candidate.examples)
        if len(examples) != len(existing.examples):
            update["examples"] = examples
        if candidate.explanation and candidate.explanation != existing.explanation:
            update["explanation"] = candidate.explanation
        if candidate.common_mistakes and candidate.common_mistakes != existing.common_mistakes:
            update["common_mistakes"] = candidate.common_mistakes
        if candidate.similar_patterns and candidate.similar_patterns != existing.similar_patterns:
            update["similar_patterns"] = candidate.similar_patterns
        if not update:
            return existing

        merged = existing.model_copy(update=update)
        self.repository.update_grammar(merged)
        return merged
