from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    WeakLabel settings, read from WEAKLABEL_* environment variables or a .env file.

    Holds output locations, file naming conventions and logging
    configuration shared by every weak supervision component.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="WEAKLABEL_",
        case_sensitive=False,
        extra="ignore"
    )

    # Directory Paths
    results_dir: Path = Path("results")

    # Corpus file conventions
    clean_suffix: str = "_clean.jsonl"
    weak_labels_filename: str = "weak_labels.jsonl"
    stats_filename: str = "weak_supervision_stats.json"
    lf_summary_filename: str = "lf_summary.csv"

    # Logging Configuration
    log_level: str = "INFO"
    log_format: str = "{time} | {level} | {message}"
