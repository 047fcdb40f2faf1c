from db import database
from db.repository import repository_session
from models import Example, GrammarCandidate, WordCandidate
from utils.merge import KnowledgeMerger, merge_examples


def _word(**overrides) -> WordCandidate:
    data = {
        "word": "学校",
        "reading": "がっこう",
        "meaning": "school",
        "notes": "",
        "examples": [{"sentence": "私は学校に行きます。", "translation": "I go to school."}],
    }
    data.update(overrides)
    return WordCandidate.model_validate(data)


def _rule(**overrides) -> GrammarCandidate:
    data = {"rule": "は (topic marker)", "explanation": "Marks the topic."}
    data.update(overrides)
    return GrammarCandidate.model_validate(data)


def _table(name):
    with database.get_conn() as conn:
        return [tuple(row) for row in conn.execute(f"SELECT * FROM {name} ORDER BY id")]


def test_merge_examples_appends_only_unseen_sentences():
    stored = [Example(sentence="a", translation="1"), Example(sentence="b", translation="2")]
    incoming = [Example(sentence="b", translation="other"), Example(sentence="c"), Example(sentence="c")]
    merged = merge_examples(stored, incoming)
    assert [(e.sentence, e.translation) for e in merged] == [("a", "1"), ("b", "2"), ("c", "")]


def test_example_sentences_match_exactly():
    stored = [Example(sentence="学校に行きます。")]
    incoming = [Example(sentence="学校に行きます。 "), Example(sentence="学校に行きます。")]
    merged = merge_examples(stored, incoming)
    assert [e.sentence for e in merged] == ["学校に行きます。", "学校に行きます。 "]


def test_merge_word_creates_with_supplied_level(tadoku_home):
    with repository_session() as repository:
        word = KnowledgeMerger(repository).merge_word(_word(notes="common word"), level=4)
    assert word.id is not None
    assert word.level == 4
    assert word.notes == "common word"
    assert [e.sentence for e in word.examples] == ["私は学校に行きます。"]


def test_merge_word_appends_new_examples_and_keeps_level(tadoku_home):
    with repository_session() as repository:
        merger = KnowledgeMerger(repository)
        first = merger.merge_word(_word(), level=2)
        second = merger.merge_word(
            _word(
                meaning="a school (different wording)",
                examples=[
                    {"sentence": "私は学校に行きます。", "translation": "duplicate"},
                    {"sentence": "学校は大きいです。", "translation": "The school is big."},
                ],
            ),
            level=9,
        )
    assert second.id == first.id
    assert second.level == 2
    assert second.meaning == "school"
    assert [e.sentence for e in second.examples] == ["私は学校に行きます。", "学校は大きいです。"]
    assert second.examples[0].translation == "I go to school."
    with repository_session() as repository:
        stored = repository.find_word_by_key("学校", "がっこう")
    assert stored == second


def test_merge_word_notes_last_write_wins_but_blank_notes_keep_stored(tadoku_home):
    with repository_session() as repository:
        merger = KnowledgeMerger(repository)
        merger.merge_word(_word(notes="first"), level=1)
        assert merger.merge_word(_word(notes="second"), level=1).notes == "second"
        assert merger.merge_word(_word(notes=""), level=1).notes == "second"


def test_same_text_with_different_reading_is_a_different_word(tadoku_home):
    with repository_session() as repository:
        merger = KnowledgeMerger(repository)
        a = merger.merge_word(_word(word="今日", reading="きょう", meaning="today"), level=1)
        b = merger.merge_word(_word(word="今日", reading="こんにち", meaning="these days"), level=1)
    assert a.id != b.id


def test_merge_grammar_updates_fields_only_when_supplied(tadoku_home):
    with repository_session() as repository:
        merger = KnowledgeMerger(repository)
        created = merger.merge_grammar(
            _rule(commonMistakes="Confusing with が", similarPatterns="が"), level=1
        )
        updated = merger.merge_grammar(
            _rule(
                explanation="Marks the topic; contrasts it with others.",
                commonMistakes="",
                similarPatterns="も",
                examples=[{"sentence": "私は学生です。", "translation": "I am a student."}],
            ),
            level=5,
        )
    assert updated.id == created.id
    assert updated.level == 1
    assert updated.explanation == "Marks the topic; contrasts it with others."
    assert updated.common_mistakes == "Confusing with が"
    assert updated.similar_patterns == "も"
    assert [e.sentence for e in updated.examples] == ["私は学生です。"]


def test_merging_identical_candidates_twice_changes_nothing(tadoku_home):
    words = [_word(notes="n"), _word(word="先生", reading="せんせい", meaning="teacher")]
    rules = [_rule(commonMistakes="x", similarPatterns="y")]
    with repository_session() as repository:
        merger = KnowledgeMerger(repository)
        for candidate in words:
            merger.merge_word(candidate, level=2)
        for candidate in rules:
            merger.merge_grammar(candidate, level=1)
    words_before, rules_before = _table("words"), _table("grammar_rules")

    with repository_session() as repository:
        merger = KnowledgeMerger(repository)
        for candidate in words:
            merger.merge_word(candidate, level=2)
        for candidate in rules:
            merger.merge_grammar(candidate, level=1)

    assert _table("words") == words_before
    assert _table("grammar_rules") == rules_before


def test_duplicate_sentence_across_candidates_is_stored_once(tadoku_home):
    shared = {"sentence": "学校で勉強します。", "translation": "I study at school."}
    with repository_session() as repository:
        merger = KnowledgeMerger(repository)
        merger.merge_word(_word(examples=[shared, {"sentence": "学校は遠い。"}]), level=1)
        word = merger.merge_word(_word(examples=[shared, shared]), level=1)
        merger.merge_grammar(_rule(examples=[shared]), level=1)
        rule = merger.merge_grammar(_rule(examples=[shared]), level=1)
    assert [e.sentence for e in word.examples].count("学校で勉強します。") == 1
    assert [e.sentence for e in rule.examples] == ["学校で勉強します。"]
