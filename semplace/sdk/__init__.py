from .run import PlacementRunResult, place_from_config

__all__ = ["PlacementRunResult", "place_from_config"]
