from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional
import numpy as np

from .quaternion import Quaternion
from .utils import as_float_list


class FailureKind(str, Enum):
    """Expected, non-exceptional ways a placement can fail."""
    MISSING_SEMANTIC_POINT = "missing_semantic_point"
    UNRESOLVABLE_OVERLAP = "unresolvable_overlap"
    VERIFICATION_MISMATCH = "verification_mismatch"
    UNKNOWN_ASSET = "unknown_asset"
    UNKNOWN_TARGET = "unknown_target"


@dataclass(frozen=True)
class PlacementFailure:
    request_id: str
    kind: FailureKind
    message: str

    def as_dict(self) -> Dict[str, str]:
        return {"id": self.request_id, "kind": self.kind.value, "message": self.message}


@dataclass(frozen=True)
class AlignmentResult:
    rotation: Quaternion
    # False when the anchor's up reference ended up parallel to the contact
    # normal and the twist about it was left at q1's choice.
    twist_constrained: bool = True


@dataclass(frozen=True)
class VerificationReport:
    expected: np.ndarray
    actual: np.ndarray
    residual: float
    ok: bool


@dataclass
class PlacedPose:
    """Solved pose for one request.

    ``anchor`` and ``clearance`` are kept so the contact can be re-checked after
    packing moves the pose.
    """
    request_id: str
    asset: str
    position: np.ndarray
    rotation: Quaternion
    scale: np.ndarray
    target: str
    target_point: str
    alignment: AlignmentResult
    verification: VerificationReport
    collisions: List[str] = field(default_factory=list)
    anchor: str = ""
    clearance: float = 0.0

    def as_command(self, ndigits: int = 6) -> Dict[str, object]:
        return {
            "id": self.request_id,
            "asset": self.asset,
            "position": as_float_list(self.position, ndigits),
            "rotation": as_float_list(self.rotation.normalized().as_array(), ndigits),
            "scale": as_float_list(self.scale, ndigits),
        }


@dataclass(frozen=True)
class PlacementOutcome:
    request_id: str
    pose: Optional[PlacedPose] = None
    failure: Optional[PlacementFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None and self.pose is not None
