import tomllib
import shutil
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv
import os

CONFIG_DIR = Path.home() / ".tadoku"
CONFIG_PATH = CONFIG_DIR / "config.toml"
PROJECT_CONFIG_EXAMPLE = Path(__file__).parent / "config.toml"

def load_config() -> Dict[str, Any]:
    """Load config from ~/.tadoku/config.toml, copy example if missing, load .env overrides."""
    load_dotenv()  # Load .env for overrides (e.g., OLLAMA_MODEL env var)
    if not CONFIG_PATH.exists():
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        shutil.copy(PROJECT_CONFIG_EXAMPLE, CONFIG_PATH)
    with open(CONFIG_PATH, "rb") as f:
        config = tomllib.load(f)
    # Support legacy flat keys while preferring nested tables
    legacy_ollama = {
        "model": config.get("ollama_model"),
        "timeout": config.get("ollama_timeout")
    }

    ollama_cfg = config.get("ollama", {})
    config["ollama"] = {
        "model": os.getenv("OLLAMA_MODEL", ollama_cfg.get("model", legacy_ollama.get("model") or "llama3.2")),
        "timeout": int(os.getenv("OLLAMA_TIMEOUT", ollama_cfg.get("timeout", legacy_ollama.get("timeout") or 120)))
    }
    scheduler_cfg = config.get("scheduler", {})
    config["scheduler"] = {
        "default_sleep_days": int(os.getenv(
            "TADOKU_SLEEP_DAYS",
            scheduler_cfg.get("default_sleep_days", 7)
        )),
    }
    search_cfg = config.get("search", {})
    config["search"] = {
        "word_limit": int(search_cfg.get("word_limit", 10)),
        "grammar_limit": int(search_cfg.get("grammar_limit", 20)),
        "list_limit": int(search_cfg.get("list_limit", 100)),
    }
    logging_cfg = config.get("logging", {})
    config["logging"] = {
        "level": os.getenv("TADOKU_LOG_LEVEL", logging_cfg.get("level", "INFO")).upper(),
    }
    return config

def get_config_value(section: str, key: str, default: Optional[Any] = None) -> Any:
    """Get nested config value, e.g., get_config_value('ollama', 'model')."""
    config = load_config()
    value = config.get(section, {}).get(key, default)
    return value
