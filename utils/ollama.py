import logging
import subprocess
from typing import Optional, Protocol
from config import load_config
from .errors import AnalysisUnavailable

logger = logging.getLogger(__name__)


class AnalysisRequester(Protocol):
    """Produces raw analysis text for a document, or raises AnalysisUnavailable."""

    def analyze(self, document_text: str, vocab_level: int, grammar_level: int) -> str:
        ...


def build_analysis_prompt(document_text: str, vocab_level: int, grammar_level: int) -> str:
    return f"""You are a Japanese language teacher analyzing a story for a student at vocabulary level {vocab_level}
and grammar level {grammar_level}.

Story:
{document_text}

Please provide:

1. A vocabulary list with, for each important word in the story:
   - the word in Japanese (kanji if applicable)
   - its reading in kana
   - its meaning in English
   - 2-3 example sentences showing different usages
   - notes on nuance, context or usage

2. A grammar analysis covering each grammar point used in the story:
   - a clear explanation of how it works
   - example sentences beyond those in the story
   - common mistakes learners make with it
   - how it compares to similar patterns

Respond with raw JSON only, no markdown or code fences, in this format:
{{
  "vocabulary": [
    {{
      "word": "日本語",
      "reading": "にほんご",
      "meaning": "Japanese language",
      "examples": [{{"sentence": "私は日本語を勉強しています。", "translation": "I am studying Japanese."}}],
      "notes": "Notes about usage or cultural context"
    }}
  ],
  "grammarPoints": [
    {{
      "rule": "は (Topic Marker)",
      "explanation": "How the grammar point works",
      "examples": [{{"sentence": "私は学生です。", "translation": "I am a student."}}],
      "commonMistakes": "Common errors",
      "similarPatterns": "Comparison with similar patterns"
    }}
  ]
}}"""


def call_llm(prompt: str, model: str = None, timeout: int = None) -> str:
    """Call local Ollama model with prompt and return its stdout.

    Raises AnalysisUnavailable when the CLI cannot be started, fails, times
    out, prints output that is not UTF-8, or prints nothing. Output from a
    timed-out run is discarded.
    """
    config = load_config()
    model = model or config.get('ollama', {}).get('model', 'llama3.2')
    timeout = timeout or config.get('ollama', {}).get('timeout', 120)
    cmd = ['ollama', 'run', model]
    try:
        result = subprocess.run(
            cmd,
            input=prompt,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=True,
            encoding='utf-8'
        )
    except (subprocess.SubprocessError, OSError, UnicodeDecodeError) as e:
        logger.warning("Ollama call failed: %s", e)
        raise AnalysisUnavailable(f"Ollama call failed: {e}") from e
    output = result.stdout.strip()
    if not output:
        raise AnalysisUnavailable("Ollama returned an empty response")
    return output


class OllamaAnalysisRequester:
    def __init__(self, model: Optional[str] = None, timeout: Optional[int] = None):
        self.model = model
        self.timeout = timeout

    def analyze(self, document_text: str, vocab_level: int, grammar_level: int) -> str:
        prompt = build_analysis_prompt(document_text, vocab_level, grammar_level)
        return call_llm(prompt, model=self.model, timeout=self.timeout)
