import pytest

from conftest import SCHOOL, TOPIC_MARKER, analysis_json
from utils.errors import ValidationError
from utils.validate import validate_response


def test_parses_vocabulary_and_grammar():
    payload = validate_response(analysis_json([SCHOOL], [TOPIC_MARKER]))
    assert [c.word for c in payload.vocabulary] == ["学校"]
    assert payload.vocabulary[0].examples[0].translation == "I go to school."
    assert [c.rule for c in payload.grammar] == ["は (topic marker)"]
    assert payload.dropped_vocabulary == 0
    assert payload.dropped_grammar == 0


def test_one_list_is_enough():
    payload = validate_response(analysis_json(vocabulary=[SCHOOL]))
    assert len(payload.vocabulary) == 1
    assert payload.grammar == []


def test_empty_lists_are_a_valid_empty_analysis():
    payload = validate_response(analysis_json([], []))
    assert payload.vocabulary == []
    assert payload.grammar == []


def test_drops_candidates_missing_required_fields():
    vocabulary = [
        SCHOOL,
        {"word": "先生", "reading": "", "meaning": "teacher"},
        {"word": "猫", "meaning": "cat"},
        "not an object",
    ]
    grammar = [
        TOPIC_MARKER,
        {"rule": "を (object marker)", "explanation": "   "},
        {"explanation": "no rule"},
    ]
    payload = validate_response(analysis_json(vocabulary, grammar))
    assert [c.word for c in payload.vocabulary] == ["学校"]
    assert [c.rule for c in payload.grammar] == ["は (topic marker)"]
    assert payload.dropped_vocabulary == 3
    assert payload.dropped_grammar == 2


def test_optional_fields_default_and_bad_examples_are_dropped():
    candidate = {
        "word": " 本 ",
        "reading": "ほん",
        "meaning": "book",
        "notes": None,
        "examples": [
            {"sentence": "本を読みます。"},
            {"sentence": "", "translation": "empty"},
            {"translation": "no sentence"},
            "garbage",
        ],
    }
    grammar = {
        "rule": "て-form",
        "explanation": "Connects clauses.",
        "commonMistakes": None,
        "similarPatterns": "から",
    }
    payload = validate_response(analysis_json([candidate], [grammar]))
    word = payload.vocabulary[0]
    assert word.word == "本"
    assert word.notes == ""
    assert [(e.sentence, e.translation) for e in word.examples] == [("本を読みます。", "")]
    rule = payload.grammar[0]
    assert rule.common_mistakes == ""
    assert rule.similar_patterns == "から"


@pytest.mark.parametrize(
    "text",
    [
        "not json at all",
        '{"vocabulary": [',
        "[1, 2, 3]",
        '{"story": "no lists here"}',
        '{"vocabulary": "should be a list", "grammarPoints": null}',
    ],
)
def test_rejects_unusable_responses(text):
    with pytest.raises(ValidationError):
        validate_response(text)


def test_rejects_response_where_every_candidate_is_malformed():
    with pytest.raises(ValidationError):
        validate_response(analysis_json([{"word": "猫"}], [{"rule": "は"}]))
