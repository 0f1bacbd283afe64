"""Configuration loading utilities for semplace."""

from .schema import (
    AssetRecord,
    CatalogConfig,
    EngineConfig,
    PackingConfig,
    PlacementCommand,
    PlacementRequestModel,
    ScenarioConfig,
    SceneConfig,
    SceneInstanceRecord,
    load_config,
)

__all__ = [
    "AssetRecord",
    "CatalogConfig",
    "EngineConfig",
    "PackingConfig",
    "PlacementCommand",
    "PlacementRequestModel",
    "ScenarioConfig",
    "SceneConfig",
    "SceneInstanceRecord",
    "load_config",
]
