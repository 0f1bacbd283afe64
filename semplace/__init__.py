"""semplace – Semantic Local Space placement engine.

This package contains the deterministic geometry outlined in the design doc:
- Quaternion value type (core.quaternion)
- Canonical asset frames from semantic points (core.frame)
- Local / SLS / World conversions (core.spaces)
- Two-vector alignment and pivot solving (core.alignment, core.placement)
- Lateral overlap resolution on shared surfaces (core.packing)
- Request orchestration against an indexed scene (core.placer)

Configuration, the SDK runner and the CLI sit on top and only exchange plain
records with the engine.
"""

from .core.quaternion import Quaternion
from .core.types import AssetDefinition, AssetFrame, Footprint, Instance, Pose, SemanticPoint
from .core.frame import FrameCalculator, compute_frame, directional_points
from .core.spaces import (
    local_to_sls,
    normal_to_world,
    offset_to_world,
    point_to_world,
    sls_to_world_rotation,
    world_to_sls,
)
from .core.alignment import AlignmentSolver, align_two_vectors, from_to_rotation
from .core.placement import PlacementSolver
from .core.packing import PackCandidate, PackResult, SurfacePacker
from .core.indexer import index_from_world, index_instance, instance_from_record, instance_to_record
from .core.placer import PlacementRequest, SemanticPlacer
from .core.results import FailureKind, PlacementFailure, PlacementOutcome
