from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

PROVIDERS = ("ollama", "anthropic", "openai")

DEFAULTS = {
    "llm_provider": "ollama",
    "llm_model": "qwen3:8b",
    "ollama_url": "http://localhost:11434",
    "llm_thinking": False,
    "judge_temperature": 0.0,
    "judge_retries": 3,
    "judge_retry_delay": 1.0,
    "judge_cache_seconds": 3600,
    "progress_max_age_hours": 24,
    "db_path": "progress.db",
    "item_files": [],
}


@dataclass
class Settings:
    llm_provider: str = DEFAULTS["llm_provider"]
    llm_model: str = DEFAULTS["llm_model"]
    ollama_url: str = DEFAULTS["ollama_url"]
    llm_thinking: bool = DEFAULTS["llm_thinking"]
    judge_temperature: float = DEFAULTS["judge_temperature"]
    judge_retries: int = DEFAULTS["judge_retries"]
    judge_retry_delay: float = DEFAULTS["judge_retry_delay"]
    judge_cache_seconds: int = DEFAULTS["judge_cache_seconds"]
    progress_max_age_hours: float = DEFAULTS["progress_max_age_hours"]
    db_path: str = DEFAULTS["db_path"]
    item_files: list[str] = field(default_factory=lambda: list(DEFAULTS["item_files"]))

    def __post_init__(self):
        if self.llm_provider not in PROVIDERS:
            raise ValueError(f"Unknown LLM provider: {self.llm_provider}")
        if self.judge_retries < 1:
            raise ValueError("judge_retries must be at least 1")
        if self.judge_retry_delay < 0 or self.judge_cache_seconds < 0:
            raise ValueError("judge delays must not be negative")
        if self.progress_max_age_hours <= 0:
            raise ValueError("progress_max_age_hours must be positive")

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def data_dir(self) -> Path:
        return self.project_root / "data"

    @property
    def db_full_path(self) -> Path:
        return self.project_root / self.db_path

    def resolved_item_files(self) -> list[Path]:
        if self.item_files:
            root = self.project_root
            return [root / f for f in self.item_files]
        return sorted(self.data_dir.glob("*.md"))

    def to_dict(self) -> dict:
        return {
            "llm_provider": self.llm_provider,
            "llm_model": self.llm_model,
            "ollama_url": self.ollama_url,
            "llm_thinking": self.llm_thinking,
            "judge_temperature": self.judge_temperature,
            "judge_retries": self.judge_retries,
            "judge_retry_delay": self.judge_retry_delay,
            "judge_cache_seconds": self.judge_cache_seconds,
            "progress_max_age_hours": self.progress_max_age_hours,
            "db_path": self.db_path,
            "item_files": self.item_files,
        }


def load_settings() -> Settings:
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
        # Migrate: vocab_files -> item_files
        if "vocab_files" in raw:
            raw.setdefault("item_files", raw["vocab_files"])
            del raw["vocab_files"]
        known = {f.name for f in Settings.__dataclass_fields__.values()}
        filtered = {k: v for k, v in raw.items() if k in known}
        return Settings(**filtered)
    return Settings()


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")
