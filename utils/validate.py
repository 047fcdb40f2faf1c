from __future__ import annotations

import json
import logging
from typing import Any, List, Tuple, Type, TypeVar

import pydantic

from models import AnalysisPayload, GrammarCandidate, WordCandidate
from .errors import ValidationError

logger = logging.getLogger(__name__)

VOCABULARY_KEY = "vocabulary"
GRAMMAR_KEY = "grammarPoints"

T = TypeVar("T", bound=pydantic.BaseModel)


def _keep_valid(items: Any, model: Type[T]) -> Tuple[List[T], int]:
    """Parse each item with model; items that fail are dropped and counted."""
    if not isinstance(items, list):
        return [], 0
    kept: List[T] = []
    dropped = 0
    for item in items:
        if not isinstance(item, dict):
            dropped += 1
            continue
        try:
            kept.append(model.model_validate(item))
        except pydantic.ValidationError as exc:
            dropped += 1
            logger.debug("Dropping %s candidate: %s", model.__name__, exc.errors())
    return kept, dropped


def validate_response(text: str) -> AnalysisPayload:
    """Parse sanitized analysis text into vocabulary and grammar candidates.

    Malformed candidates are dropped one by one. The whole response is rejected
    with ValidationError when it is not a JSON object, carries neither a
    vocabulary list nor a grammar list, or supplied candidates of which none
    survived.
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Analysis response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError("Analysis response is not a JSON object")

    vocab_raw = data.get(VOCABULARY_KEY)
    grammar_raw = data.get(GRAMMAR_KEY)
    if not isinstance(vocab_raw, list) and not isinstance(grammar_raw, list):
        raise ValidationError(f"Analysis response has neither '{VOCABULARY_KEY}' nor '{GRAMMAR_KEY}'")

    vocabulary, dropped_vocab = _keep_valid(vocab_raw, WordCandidate)
    grammar, dropped_grammar = _keep_valid(grammar_raw, GrammarCandidate)
    if not vocabulary and not grammar and (dropped_vocab or dropped_grammar):
        raise ValidationError("Analysis response contained no usable vocabulary or grammar entries")
    if dropped_vocab or dropped_grammar:
        logger.info(
            "Dropped %d vocabulary and %d grammar candidates missing required fields",
            dropped_vocab,
            dropped_grammar,
        )
    return AnalysisPayload(
        vocabulary=vocabulary,
        grammar=grammar,
        dropped_vocabulary=dropped_vocab,
        dropped_grammar=dropped_grammar,
    )
