# SQL schema for the Tadoku Review database

SCHEMA_VERSION = 4

SCHEMA_SQL = """
-- Learners
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT UNIQUE NOT NULL,
    vocab_level INTEGER NOT NULL DEFAULT 1,
    grammar_level INTEGER NOT NULL DEFAULT 0
);

-- Source documents (stories) owned by the surrounding application
CREATE TABLE IF NOT EXISTS documents (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER,
    title TEXT NOT NULL DEFAULT '',
    text TEXT NOT NULL,
    level INTEGER NOT NULL DEFAULT 1,
    grammar_level INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    analyzed_at TEXT,
    legacy_id TEXT,
    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE SET NULL
);

-- Vocabulary knowledge base, identity is (text, reading)
CREATE TABLE IF NOT EXISTS words (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    text TEXT NOT NULL,
    reading TEXT NOT NULL,
    meaning TEXT NOT NULL,
    level INTEGER NOT NULL,
    notes TEXT NOT NULL DEFAULT '',
    examples_json TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now')),
    UNIQUE (text, reading)
);

-- Grammar knowledge base, identity is the rule text
CREATE TABLE IF NOT EXISTS grammar_rules (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    rule TEXT UNIQUE NOT NULL,
    level INTEGER NOT NULL,
    explanation TEXT NOT NULL,
    common_mistakes TEXT NOT NULL DEFAULT '',
    similar_patterns TEXT NOT NULL DEFAULT '',
    examples_json TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Document/word associations
CREATE TABLE IF NOT EXISTS document_words (
    document_id INTEGER NOT NULL,
    word_id INTEGER NOT NULL,
    frequency INTEGER NOT NULL DEFAULT 1 CHECK(frequency >= 1),
    position INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (document_id, word_id),
    FOREIGN KEY (document_id) REFERENCES documents (id) ON DELETE CASCADE,
    FOREIGN KEY (word_id) REFERENCES words (id) ON DELETE CASCADE
);

-- Document/grammar associations
CREATE TABLE IF NOT EXISTS document_grammar (
    document_id INTEGER NOT NULL,
    rule_id INTEGER NOT NULL,
    position INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (document_id, rule_id),
    FOREIGN KEY (document_id) REFERENCES documents (id) ON DELETE CASCADE,
    FOREIGN KEY (rule_id) REFERENCES grammar_rules (id) ON DELETE CASCADE
);

-- Per-user difficult words with a sleep-until instant (ISO-8601 UTC)
CREATE TABLE IF NOT EXISTS difficult_words (
    user_id INTEGER NOT NULL,
    word_id INTEGER NOT NULL,
    sleep_until TEXT NOT NULL,
    PRIMARY KEY (user_id, word_id),
    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE,
    FOREIGN KEY (word_id) REFERENCES words (id) ON DELETE CASCADE
);

-- Completed readings
CREATE TABLE IF NOT EXISTS read_documents (
    user_id INTEGER NOT NULL,
    document_id INTEGER NOT NULL,
    completed_at TEXT NOT NULL,
    PRIMARY KEY (user_id, document_id),
    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE,
    FOREIGN KEY (document_id) REFERENCES documents (id) ON DELETE CASCADE
);
"""

# Indexes for performance
INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_documents_user ON documents (user_id);
CREATE INDEX IF NOT EXISTS idx_words_level ON words (level);
CREATE INDEX IF NOT EXISTS idx_grammar_rules_level ON grammar_rules (level);
CREATE INDEX IF NOT EXISTS idx_document_words_word ON document_words (word_id);
CREATE INDEX IF NOT EXISTS idx_document_grammar_rule ON document_grammar (rule_id);
CREATE INDEX IF NOT EXISTS idx_difficult_words_user ON difficult_words (user_id, sleep_until);
CREATE INDEX IF NOT EXISTS idx_read_documents_user ON read_documents (user_id, completed_at);
"""
