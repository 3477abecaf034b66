"""Configuration loading with project-level overrides."""

import json
import os
from pathlib import Path
from typing import Any

from ..indexer_logging import get_logger
from .models import IndexerConfig

logger = get_logger()

PROJECT_CONFIG_DIR = ".tdd-rag"
PROJECT_CONFIG_FILE = "config.json"

ENV_VARS = {
    "openai_api_key": "OPENAI_API_KEY",
    "voyage_api_key": "VOYAGE_API_KEY",
    "qdrant_api_key": "QDRANT_API_KEY",
    "qdrant_url": "QDRANT_URL",
    "embedding_provider": "EMBEDDING_PROVIDER",
    "embedding_model": "EMBEDDING_MODEL",
    "user_id": "TDD_RAG_USER_ID",
}


class ConfigLoader:
    """Merges defaults, project config, environment and explicit overrides."""

    def __init__(self, project_path: Path | None = None):
        self.project_path = Path(project_path) if project_path else Path.cwd()

    @property
    def config_path(self) -> Path:
        return self.project_path / PROJECT_CONFIG_DIR / PROJECT_CONFIG_FILE

    def load(self, **overrides: Any) -> IndexerConfig:
        """Load configuration from all sources.

        Precedence (highest to lowest):
        1. Explicit overrides
        2. Environment variables
        3. Project config (.tdd-rag/config.json)
        4. Defaults
        """
        config_dict: dict[str, Any] = {}

        project_settings = self._load_project_file()
        config_dict.update(project_settings)
        if project_settings:
            logger.debug(
                f"Applied {len(project_settings)} project settings from {self.config_path}"
            )

        env_count = 0
        for key, env_name in ENV_VARS.items():
            value = os.environ.get(env_name)
            if value is not None:
                config_dict[key] = value
                env_count += 1
        if env_count > 0:
            logger.debug(f"Applied {env_count} environment variables")

        config_dict.update({k: v for k, v in overrides.items() if v is not None})

        config_dict.setdefault("project_id", self.project_path.name or "default")
        config_dict.setdefault("state_directory", self.project_path / PROJECT_CONFIG_DIR)

        try:
            return IndexerConfig(**config_dict)
        except ValueError as e:
            logger.warning(f"Configuration validation failed: {e}, using defaults")
            return self._apply_valid_settings(config_dict)

    def _load_project_file(self) -> dict[str, Any]:
        if not self.config_path.exists():
            return {}
        try:
            with open(self.config_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load project config {self.config_path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring project config {self.config_path}: not an object")
            return {}
        return {k: v for k, v in data.items() if k in IndexerConfig.model_fields}

    def _apply_valid_settings(self, config_dict: dict[str, Any]) -> IndexerConfig:
        """Keep each setting that validates on its own, drop the rest."""
        valid: dict[str, Any] = {}
        for key, value in config_dict.items():
            if key not in IndexerConfig.model_fields:
                continue
            try:
                IndexerConfig(**{**valid, key: value})
            except ValueError as e:
                logger.warning(f"Ignoring invalid setting {key}={value!r}: {e}")
                continue
            valid[key] = value
        return IndexerConfig(**valid)


def load_config(project_path: Path | None = None, **overrides: Any) -> IndexerConfig:
    """Load configuration for a project directory."""
    return ConfigLoader(project_path=project_path).load(**overrides)
