from functools import lru_cache

from config import load_config
from utils.ollama import OllamaAnalysisRequester
from utils.pipeline import ExtractionPipeline
from utils.scheduler import DifficultyScheduler


@lru_cache
def get_pipeline() -> ExtractionPipeline:
    """Process-wide pipeline so concurrent requests share one set of in-flight analyses."""
    config = load_config()
    requester = OllamaAnalysisRequester(
        model=config["ollama"]["model"],
        timeout=config["ollama"]["timeout"],
    )
    return ExtractionPipeline(requester)


@lru_cache
def get_scheduler() -> DifficultyScheduler:
    config = load_config()
    return DifficultyScheduler(default_sleep_days=config["scheduler"]["default_sleep_days"])


def get_search_limits() -> dict:
    return load_config()["search"]
