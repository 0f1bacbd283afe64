from __future__ import annotations
from typing import Iterable, List, Sequence, Union
import numpy as np

from .quaternion import Quaternion
from .types import AssetFrame, SemanticPoint, find_point
from .utils import get_logger, vec3

_log = get_logger()

FRONT = "front"
TOP = "top"

# Axis normals for the six points authored by ``directional_points``.
DIRECTIONS = {
    "front": (0.0, 0.0, 1.0),
    "back": (0.0, 0.0, -1.0),
    "left": (-1.0, 0.0, 0.0),
    "right": (1.0, 0.0, 0.0),
    "top": (0.0, 1.0, 0.0),
    "bottom": (0.0, -1.0, 0.0),
}


class FrameCalculator:
    """Derives an asset's Local→SLS rotation from its ``front`` and ``top`` normals.

    SLS is the canonical frame with Front=+Z, Up=+Y and Right=+X. The front
    normal is kept exactly and the up normal is re-orthogonalized against it,
    so for perpendicular inputs both map onto their axes.

    Zero or parallel inputs are degenerate: the result is the identity and a
    warning is logged. Placement still works, only the twist is unconstrained.
    """

    def __init__(self, eps: float = 1e-6) -> None:
        self.eps = float(eps)

    def compute_frame(
        self,
        front_normal_local: Union[Sequence[float], np.ndarray],
        up_normal_local: Union[Sequence[float], np.ndarray],
    ) -> Quaternion:
        rotation, _ = self._compute(front_normal_local, up_normal_local)
        return rotation

    def compute_asset_frame(
        self,
        points: Iterable[SemanticPoint],
        default_scale: Union[Sequence[float], np.ndarray] = (1.0, 1.0, 1.0),
        asset: str = "",
    ) -> AssetFrame:
        pts = list(points)
        front = find_point(pts, FRONT)
        top = find_point(pts, TOP)
        if front is None or top is None:
            missing = [n for n, p in ((FRONT, front), (TOP, top)) if p is None]
            _log.warning("Asset '%s' lacks %s point(s); using identity frame.", asset or "?", ", ".join(missing))
            return AssetFrame(Quaternion.identity(), default_scale, degenerate=True)
        rotation, degenerate = self._compute(front.normal, top.normal, asset=asset)
        return AssetFrame(rotation, default_scale, degenerate=degenerate)

    def _compute(self, front_in, up_in, asset: str = "") -> tuple[Quaternion, bool]:
        front = vec3(front_in, "front normal")
        up = vec3(up_in, "up normal")
        nf = float(np.linalg.norm(front))
        nu = float(np.linalg.norm(up))
        if nf < self.eps or nu < self.eps:
            _log.warning("Degenerate frame for '%s': zero front/up normal; using identity.", asset or "?")
            return Quaternion.identity(), True

        z = front / nf
        x = np.cross(up / nu, z)
        nx = float(np.linalg.norm(x))
        if nx < self.eps:
            _log.warning("Degenerate frame for '%s': front and up are parallel; using identity.", asset or "?")
            return Quaternion.identity(), True
        x = x / nx
        y = np.cross(z, x)

        # Columns map SLS axes to Local; its transpose maps Local to SLS.
        basis = np.column_stack([x, y, z])
        return Quaternion.from_matrix(basis.T), False


def compute_frame(front_normal_local, up_normal_local, eps: float = 1e-6) -> Quaternion:
    return FrameCalculator(eps).compute_frame(front_normal_local, up_normal_local)


def directional_points(
    center_offset: Union[Sequence[float], np.ndarray],
    size: Union[Sequence[float], np.ndarray],
) -> List[SemanticPoint]:
    """Six face-centre points of a Local bounding box with outward axis normals."""
    c = vec3(center_offset, "center_offset")
    half = vec3(size, "size") / 2.0
    if np.any(half < 0):
        raise ValueError("size components must be non-negative")
    points: List[SemanticPoint] = []
    for name, normal in DIRECTIONS.items():
        n = np.asarray(normal, dtype=np.float64)
        points.append(SemanticPoint(name, c + n * half, n))
    return points
