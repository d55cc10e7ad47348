"""Manic Miners level aggregation: catalog index, duplicate analysis and merging."""

from level_collector.__version__ import __version__
from level_collector.catalog import (
    build_catalog_index,
    load_catalog_index,
    rebuild_catalog_index,
    save_catalog_index,
)
from level_collector.config import MergeConfig, load_merge_config
from level_collector.models import CatalogIndex, Level, LevelMetadata, MapSource

__all__ = [
    "__version__",
    "CatalogIndex",
    "Level",
    "LevelMetadata",
    "MapSource",
    "MergeConfig",
    "build_catalog_index",
    "load_catalog_index",
    "load_merge_config",
    "rebuild_catalog_index",
    "save_catalog_index",
]
