import json
from pathlib import Path

import pytest

import config
from db import database
from db.repository import repository_session
from models import DocumentCreate, UserCreate


def _write_test_config(config_path: Path) -> None:
    config_path.write_text(
        "\n".join(
            [
                "[ollama]",
                "model = \"llama3.2\"",
                "timeout = 5",
                "",
                "[scheduler]",
                "default_sleep_days = 7",
                "",
                "[search]",
                "word_limit = 10",
                "grammar_limit = 20",
                "list_limit = 100",
            ]
        ),
        encoding="utf-8",
    )


@pytest.fixture
def tadoku_home(tmp_path, monkeypatch):
    config_dir = tmp_path / ".tadoku"
    config_dir.mkdir()
    config_path = config_dir / "config.toml"
    _write_test_config(config_path)

    for name in ("OLLAMA_MODEL", "OLLAMA_TIMEOUT", "TADOKU_SLEEP_DAYS", "TADOKU_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config, "CONFIG_PATH", config_path)
    monkeypatch.setattr(database, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(database, "DB_PATH", config_dir / "tadoku.db")

    database.init_db()
    return config_dir


@pytest.fixture
def make_user(tadoku_home):
    def _make(username="hana", vocab_level=3, grammar_level=2):
        with repository_session() as repository:
            return repository.create_user(
                UserCreate(username=username, vocab_level=vocab_level, grammar_level=grammar_level)
            )
    return _make


@pytest.fixture
def make_document(tadoku_home):
    def _make(text="私は学校に行きます。", level=3, grammar_level=2, title="", user_id=None):
        with repository_session() as repository:
            return repository.create_document(
                DocumentCreate(text=text, level=level, grammar_level=grammar_level, title=title, user_id=user_id)
            )
    return _make


class FakeRequester:
    """Returns queued responses in order, repeating the last one; exceptions are raised."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def analyze(self, document_text, vocab_level, grammar_level):
        self.calls.append((document_text, vocab_level, grammar_level))
        if len(self.responses) > 1:
            response = self.responses.pop(0)
        else:
            response = self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def analysis_json(vocabulary=None, grammar=None) -> str:
    payload = {}
    if vocabulary is not None:
        payload["vocabulary"] = vocabulary
    if grammar is not None:
        payload["grammarPoints"] = grammar
    return json.dumps(payload, ensure_ascii=False)


SCHOOL = {
    "word": "学校",
    "reading": "がっこう",
    "meaning": "school",
    "examples": [{"sentence": "私は学校に行きます。", "translation": "I go to school."}],
}

TOPIC_MARKER = {
    "rule": "は (topic marker)",
    "explanation": "Marks the topic of the sentence.",
}
