"""Configuration package.

Precedence (highest to lowest):
1. Explicit overrides
2. Environment variables
3. Project config (.tdd-rag/config.json)
4. Defaults
"""

from .config_loader import ConfigLoader, load_config
from .models import IndexerConfig, ReindexStrategy

__all__ = ["ConfigLoader", "IndexerConfig", "ReindexStrategy", "load_config"]
