"""Configuration loader for the geo event extractor."""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from geoevents.configs.settings import get_settings


class Config:
    """Configuration for the geo event extractor."""

    # 1. Setup Base Paths
    CONFIG_DIR = Path(__file__).parent.resolve()

    # 2. Define File Paths
    INGESTION_CONFIG_PATH = CONFIG_DIR / "ingestion.yaml"

    @classmethod
    @lru_cache
    def load_ingestion_config(cls, path: Optional[Path] = None) -> dict:
        """Load the YAML configuration for relay ingestion."""
        config_path = Path(path) if path else get_settings().INGESTION_CONFIG_PATH
        if not config_path.exists():
            raise FileNotFoundError(f"Missing config at {config_path}")

        with open(config_path, encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    @classmethod
    def get_categories(cls, path: Optional[Path] = None) -> Dict[str, Dict[str, Any]]:
        """Return the category -> definition table."""
        return cls.load_ingestion_config(path).get("categories", {})

    @classmethod
    def kinds_for(cls, category: str, path: Optional[Path] = None) -> List[int]:
        """
        Return the kind numbers requested for a category.

        Raises:
            KeyError: If the category is not configured
        """
        categories = cls.get_categories(path)
        if category not in categories:
            raise KeyError(
                f"Unknown category '{category}'. "
                f"Configured categories: {list(categories.keys())}"
            )
        return [int(k) for k in categories[category].get("kinds", [])]

    @classmethod
    def build_filters(
        cls,
        categories: Optional[List[str]] = None,
        limit: Optional[int] = None,
        path: Optional[Path] = None,
        **overrides: Any,
    ) -> List[Dict[str, Any]]:
        """
        Build one relay filter per configured category.

        Args:
            categories: Restrict to these categories (default: all)
            limit: Per-filter limit (default: FETCH_LIMIT setting)
            path: Alternative ingestion YAML
            **overrides: Extra keys merged into every filter (e.g. ``since``)

        Returns:
            List of relay filter dicts
        """
        if limit is None:
            limit = get_settings().FETCH_LIMIT
        return cls._filters(categories, limit, "filter", path, overrides)

    @classmethod
    def stream_filters(
        cls,
        categories: Optional[List[str]] = None,
        limit: Optional[int] = None,
        path: Optional[Path] = None,
    ) -> List[Dict[str, Any]]:
        """Build the filter set used for live subscriptions."""
        if limit is None:
            limit = get_settings().STREAM_LIMIT
        return cls._filters(categories, limit, "stream_filter", path, {}, stream=True)

    @classmethod
    def _filters(
        cls,
        categories: Optional[List[str]],
        limit: int,
        filter_key: str,
        path: Optional[Path],
        overrides: Dict[str, Any],
        stream: bool = False,
    ) -> List[Dict[str, Any]]:
        table = cls.get_categories(path)
        names = categories if categories is not None else list(table.keys())

        filters = []
        for name in names:
            kinds = cls.kinds_for(name, path)
            definition = table[name]
            if stream and not definition.get("stream", True):
                continue

            relay_filter: Dict[str, Any] = {**overrides}
            relay_filter.update(definition.get(filter_key) or definition.get("filter") or {})
            relay_filter["kinds"] = kinds
            relay_filter["limit"] = int(definition.get("limit", limit))
            filters.append(relay_filter)

        return filters
