from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import numpy as np

from .quaternion import Quaternion
from .spaces import normal_to_world, point_to_world, sls_to_world_rotation
from .utils import vec3, is_zero


@dataclass(frozen=True)
class SemanticPoint:
    """A named anchor on an asset: offset from the pivot plus a face normal.

    ``normal`` is a unit direction, or the zero vector for non-directional
    markers such as ``pivot``.
    """
    name: str
    offset: np.ndarray
    normal: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("SemanticPoint requires a non-empty name.")
        object.__setattr__(self, "offset", vec3(self.offset, f"offset of '{self.name}'"))
        object.__setattr__(self, "normal", vec3(self.normal, f"normal of '{self.name}'"))

    @property
    def has_normal(self) -> bool:
        return not is_zero(self.normal)

    @staticmethod
    def from_tuple(values: Sequence) -> "SemanticPoint":
        """Parse ``[name, x, y, z, nx, ny, nz]`` (or legacy ``[name, x, y, z]``)."""
        if len(values) == 7:
            return SemanticPoint(str(values[0]), np.asarray(values[1:4], dtype=np.float64), np.asarray(values[4:7], dtype=np.float64))
        if len(values) == 4:
            return SemanticPoint(str(values[0]), np.asarray(values[1:4], dtype=np.float64))
        raise ValueError(f"Semantic point tuple must have 7 (or legacy 4) entries, got {len(values)}")

    def as_tuple(self, ndigits: int = 6) -> list:
        vals = [round(float(v), ndigits) + 0.0 for v in (*self.offset, *self.normal)]
        return [self.name, *vals]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemanticPoint):
            return NotImplemented
        return (
            self.name == other.name
            and np.array_equal(self.offset, other.offset)
            and np.array_equal(self.normal, other.normal)
        )

    def __hash__(self) -> int:
        return hash((self.name, tuple(self.offset), tuple(self.normal)))


def find_point(points: Iterable[SemanticPoint], name: str) -> Optional[SemanticPoint]:
    for p in points:
        if p.name == name:
            return p
    return None


@dataclass(frozen=True)
class AssetFrame:
    """Per-asset canonical frame: the Local→SLS rotation and default scale."""
    local_to_sls: Quaternion = field(default_factory=Quaternion.identity)
    default_scale: np.ndarray = field(default_factory=lambda: np.ones(3))
    degenerate: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "default_scale", vec3(self.default_scale, "default_scale"))


@dataclass(frozen=True)
class Pose:
    position: np.ndarray
    rotation: Quaternion = field(default_factory=Quaternion.identity)
    scale: np.ndarray = field(default_factory=lambda: np.ones(3))

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", vec3(self.position, "position"))
        object.__setattr__(self, "scale", vec3(self.scale, "scale"))

    def apply(self, p_local: np.ndarray) -> np.ndarray:
        """Local offsets (N,3) or (3,) → world points (scale, rotate, translate)."""
        return self.rotation.rotate(np.asarray(p_local, dtype=np.float64) * self.scale) + self.position


@dataclass(frozen=True)
class Footprint:
    """Lateral (X/Z) rectangle of an instance's semantic points at height ``y``."""
    min_x: float
    max_x: float
    min_z: float
    max_z: float
    y: float = 0.0

    def __post_init__(self) -> None:
        if self.min_x > self.max_x or self.min_z > self.max_z:
            raise ValueError(f"Footprint bounds are inverted: {self}")

    @staticmethod
    def from_points(points_world: np.ndarray, y: Optional[float] = None) -> "Footprint":
        pts = np.asarray(points_world, dtype=np.float64).reshape(-1, 3)
        if len(pts) == 0:
            raise ValueError("Footprint requires at least one point.")
        mn = pts.min(axis=0)
        mx = pts.max(axis=0)
        return Footprint(
            float(mn[0]), float(mx[0]), float(mn[2]), float(mx[2]),
            float(y) if y is not None else float(mn[1]),
        )

    @property
    def area(self) -> float:
        return (self.max_x - self.min_x) * (self.max_z - self.min_z)

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.min_x + self.max_x) / 2.0, (self.min_z + self.max_z) / 2.0)

    def corners(self) -> np.ndarray:
        return np.array([
            [self.min_x, self.y, self.min_z],
            [self.max_x, self.y, self.min_z],
            [self.max_x, self.y, self.max_z],
            [self.min_x, self.y, self.max_z],
        ], dtype=np.float64)

    def translated(self, dx: float, dz: float) -> "Footprint":
        return Footprint(self.min_x + dx, self.max_x + dx, self.min_z + dz, self.max_z + dz, self.y)

    def overlaps(self, other: "Footprint", clearance: float = 0.0) -> bool:
        return (
            self.min_x < other.max_x + clearance
            and self.max_x > other.min_x - clearance
            and self.min_z < other.max_z + clearance
            and self.max_z > other.min_z - clearance
        )

    def contains(self, other: "Footprint", tol: float = 1e-9) -> bool:
        return (
            other.min_x >= self.min_x - tol
            and other.max_x <= self.max_x + tol
            and other.min_z >= self.min_z - tol
            and other.max_z <= self.max_z + tol
        )


@dataclass(frozen=True)
class Bounds3:
    """World axis-aligned box of an instance's semantic points."""
    min: np.ndarray
    max: np.ndarray

    @staticmethod
    def from_points(points_world: np.ndarray) -> "Bounds3":
        pts = np.asarray(points_world, dtype=np.float64).reshape(-1, 3)
        if len(pts) == 0:
            raise ValueError("Bounds3 requires at least one point.")
        return Bounds3(pts.min(axis=0), pts.max(axis=0))


@dataclass
class Instance:
    """A placed object: pose + asset frame + unscaled SLS semantic points.

    Derived data, rebuilt on every indexing pass.
    """
    pose: Pose
    asset_frame: AssetFrame
    semantic_points_sls: List[SemanticPoint] = field(default_factory=list)
    instance_id: str = ""
    asset: Optional[str] = None

    @property
    def r_ws(self) -> Quaternion:
        return sls_to_world_rotation(self.pose.rotation, self.asset_frame.local_to_sls)

    def point(self, name: str) -> Optional[SemanticPoint]:
        return find_point(self.semantic_points_sls, name)

    def point_world(self, name: str) -> Optional[np.ndarray]:
        p = self.point(name)
        if p is None:
            return None
        return point_to_world(p.offset, self.r_ws, self.pose.scale, self.pose.position)

    def normal_world(self, name: str) -> Optional[np.ndarray]:
        p = self.point(name)
        if p is None:
            return None
        return normal_to_world(p.normal, self.r_ws)

    def world_points(self) -> Dict[str, np.ndarray]:
        r_ws = self.r_ws
        return {
            p.name: point_to_world(p.offset, r_ws, self.pose.scale, self.pose.position)
            for p in self.semantic_points_sls
        }

    def _world_array(self) -> np.ndarray:
        pts = list(self.world_points().values())
        if not pts:
            return self.pose.position.reshape(1, 3)
        return np.vstack(pts)

    def footprint(self, y: Optional[float] = None) -> Footprint:
        return Footprint.from_points(self._world_array(), y=y)

    def bounds(self) -> Bounds3:
        return Bounds3.from_points(self._world_array())


@dataclass(frozen=True)
class AssetDefinition:
    """Catalog entry: an asset's frame plus its authored Local semantic points."""
    name: str
    frame: AssetFrame
    points: Tuple[SemanticPoint, ...] = ()
    tags: Tuple[str, ...] = ()

    def has_tag(self, tag: str) -> bool:
        return tag.lower() in (t.lower() for t in self.tags)

    def point(self, name: str) -> Optional[SemanticPoint]:
        return find_point(self.points, name)

    def local_array(self) -> np.ndarray:
        if not self.points:
            return np.zeros((1, 3))
        return np.vstack([p.offset for p in self.points])
