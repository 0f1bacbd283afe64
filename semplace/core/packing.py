from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import numpy as np

from .quaternion import Quaternion
from .results import FailureKind, PlacementFailure
from .types import Bounds3, Footprint, Instance
from .utils import get_logger, vec3

_log = get_logger()

DEFAULT_CLEARANCE = 0.05
DEFAULT_DISTANCES: Tuple[float, ...] = (0.05, 0.10, 0.15, 0.20)

# Fixed enumeration order: +X, -X, +Z, -Z, then the diagonals.
DIRECTIONS: Tuple[Tuple[float, float], ...] = (
    (1.0, 0.0),
    (-1.0, 0.0),
    (0.0, 1.0),
    (0.0, -1.0),
    (1.0, 1.0),
    (1.0, -1.0),
    (-1.0, 1.0),
    (-1.0, -1.0),
)


@dataclass
class PackCandidate:
    """One item to place on a surface.

    ``points`` optionally carries the item's semantic points in world space at
    ``ideal_pivot``; the rotated retry then re-derives the footprint from them
    instead of from the rectangle corners.
    """
    id: str
    ideal_pivot: np.ndarray
    footprint: Footprint
    points: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        self.ideal_pivot = vec3(self.ideal_pivot, f"ideal pivot of '{self.id}'")
        if self.points is not None:
            self.points = np.asarray(self.points, dtype=np.float64).reshape(-1, 3)


@dataclass(frozen=True)
class PackedPlacement:
    id: str
    pivot: np.ndarray
    footprint: Footprint
    offset: Tuple[float, float] = (0.0, 0.0)
    yaw_deg: float = 0.0

    @property
    def moved(self) -> bool:
        return self.offset != (0.0, 0.0) or self.yaw_deg != 0.0


@dataclass
class PackResult:
    placements: Dict[str, PackedPlacement] = field(default_factory=dict)
    unresolved: List[PlacementFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.unresolved


class SurfacePacker:
    """Resolves lateral overlap between items resting on one surface.

    Items are processed largest footprint first (stable on ties). Each item
    keeps its ideal pivot when that is clear of earlier items and inside the
    surface; otherwise a fixed grid of small X/Z offsets is searched, then the
    same search with the footprint yawed by ``+rotation_retry_deg`` and
    ``-rotation_retry_deg``. Items that still collide are reported as
    unresolvable and the rest of the batch continues. Y is never changed.
    """

    def __init__(
        self,
        clearance: float = DEFAULT_CLEARANCE,
        distances: Sequence[float] = DEFAULT_DISTANCES,
        rotation_retry: bool = True,
        rotation_retry_deg: float = 15.0,
    ) -> None:
        self.clearance = float(clearance)
        self.distances = tuple(float(d) for d in distances)
        self.rotation_retry = bool(rotation_retry)
        self.rotation_retry_deg = float(rotation_retry_deg)

    def pack(self, surface: Footprint, candidates: Iterable[PackCandidate]) -> PackResult:
        ordered = sorted(candidates, key=lambda c: c.footprint.area, reverse=True)
        result = PackResult()
        accepted: List[Footprint] = []

        for cand in ordered:
            placed = self._search(surface, cand, cand.footprint, accepted, yaw_deg=0.0)
            if placed is None and self.rotation_retry:
                for yaw in (self.rotation_retry_deg, -self.rotation_retry_deg):
                    rotated = self._rotated_footprint(cand, yaw)
                    placed = self._search(surface, cand, rotated, accepted, yaw_deg=yaw)
                    if placed is not None:
                        break
            if placed is None:
                _log.warning("Cannot place '%s' on surface without overlap.", cand.id)
                result.unresolved.append(PlacementFailure(
                    cand.id,
                    FailureKind.UNRESOLVABLE_OVERLAP,
                    f"No offset up to {max(self.distances, default=0.0):.2f} clears '{cand.id}' from its neighbours inside the surface.",
                ))
                continue
            if placed.moved:
                _log.info("Shifted '%s' by (%.3f, %.3f), yaw %.1f°", cand.id, placed.offset[0], placed.offset[1], placed.yaw_deg)
            accepted.append(placed.footprint)
            result.placements[cand.id] = placed
        return result

    # -- internals --
    def _fits(self, surface: Footprint, fp: Footprint, accepted: Sequence[Footprint]) -> bool:
        if not surface.contains(fp):
            return False
        return not any(fp.overlaps(other, self.clearance) for other in accepted)

    def _search(
        self,
        surface: Footprint,
        cand: PackCandidate,
        footprint: Footprint,
        accepted: Sequence[Footprint],
        yaw_deg: float,
    ) -> Optional[PackedPlacement]:
        if self._fits(surface, footprint, accepted):
            return PackedPlacement(cand.id, cand.ideal_pivot.copy(), footprint, (0.0, 0.0), yaw_deg)
        for d in self.distances:
            for dx, dz in DIRECTIONS:
                ox, oz = dx * d, dz * d
                moved = footprint.translated(ox, oz)
                if self._fits(surface, moved, accepted):
                    pivot = cand.ideal_pivot + np.array([ox, 0.0, oz])
                    return PackedPlacement(cand.id, pivot, moved, (ox, oz), yaw_deg)
                _log.debug("'%s': offset (%.2f, %.2f) yaw %.1f rejected", cand.id, ox, oz, yaw_deg)
        return None

    @staticmethod
    def _rotated_footprint(cand: PackCandidate, yaw_deg: float) -> Footprint:
        pts = cand.points if cand.points is not None else cand.footprint.corners()
        q = Quaternion.from_yaw_deg(yaw_deg)
        rotated = q.rotate(pts - cand.ideal_pivot) + cand.ideal_pivot
        return Footprint.from_points(rotated, y=cand.footprint.y)


def bounds_overlap(a: Bounds3, b: Bounds3, tolerance: float = 0.0) -> bool:
    """3-D AABB intersection; boxes closer than ``tolerance`` do not count."""
    return bool(np.all(a.min < b.max - tolerance) and np.all(a.max > b.min + tolerance))


def find_collisions(
    bounds: Bounds3,
    instances: Iterable[Instance],
    exclude: Iterable[str] = (),
    tolerance: float = DEFAULT_CLEARANCE,
) -> List[str]:
    skip = set(exclude)
    hits: List[str] = []
    for inst in instances:
        if inst.instance_id in skip:
            continue
        if bounds_overlap(bounds, inst.bounds(), tolerance):
            hits.append(inst.instance_id)
    return hits
