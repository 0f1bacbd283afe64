from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence
import math
import numpy as np

from .utils import vec3


@dataclass(frozen=True)
class Quaternion:
    """Rotation quaternion stored in ``[x, y, z, w]`` order.

    ``q1 * q2`` is the Hamilton product and applies ``q2`` first, so
    ``(q1 * q2).rotate(v) == q1.rotate(q2.rotate(v))``.
    """
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0

    def __post_init__(self) -> None:
        for c in (self.x, self.y, self.z, self.w):
            if not math.isfinite(c):
                raise ValueError(f"Quaternion components must be finite, got {self.as_list()}")

    # -- constructors --
    @staticmethod
    def identity() -> "Quaternion":
        return Quaternion(0.0, 0.0, 0.0, 1.0)

    @staticmethod
    def from_list(values: Sequence[float]) -> "Quaternion":
        if len(values) != 4:
            raise ValueError(f"Quaternion needs 4 values [x, y, z, w], got {len(values)}")
        x, y, z, w = (float(v) for v in values)
        return Quaternion(x, y, z, w)

    @staticmethod
    def from_axis_angle(axis: Sequence[float] | np.ndarray, angle_rad: float) -> "Quaternion":
        a = vec3(axis, "axis")
        n = float(np.linalg.norm(a))
        if n < 1e-12:
            raise ValueError("Rotation axis must be non-zero.")
        a = a / n
        s = math.sin(angle_rad / 2.0)
        return Quaternion(float(a[0] * s), float(a[1] * s), float(a[2] * s), math.cos(angle_rad / 2.0))

    @staticmethod
    def from_matrix(R: np.ndarray) -> "Quaternion":
        """Quaternion of a proper 3x3 rotation matrix (Shepperd's method)."""
        m = np.asarray(R, dtype=np.float64)
        if m.shape != (3, 3):
            raise ValueError(f"Rotation matrix must be 3x3, got {m.shape}")
        tr = m[0, 0] + m[1, 1] + m[2, 2]
        if tr > 0.0:
            s = math.sqrt(tr + 1.0) * 2.0
            w = 0.25 * s
            x = (m[2, 1] - m[1, 2]) / s
            y = (m[0, 2] - m[2, 0]) / s
            z = (m[1, 0] - m[0, 1]) / s
        elif m[0, 0] > m[1, 1] and m[0, 0] > m[2, 2]:
            s = math.sqrt(1.0 + m[0, 0] - m[1, 1] - m[2, 2]) * 2.0
            w = (m[2, 1] - m[1, 2]) / s
            x = 0.25 * s
            y = (m[0, 1] + m[1, 0]) / s
            z = (m[0, 2] + m[2, 0]) / s
        elif m[1, 1] > m[2, 2]:
            s = math.sqrt(1.0 + m[1, 1] - m[0, 0] - m[2, 2]) * 2.0
            w = (m[0, 2] - m[2, 0]) / s
            x = (m[0, 1] + m[1, 0]) / s
            y = 0.25 * s
            z = (m[1, 2] + m[2, 1]) / s
        else:
            s = math.sqrt(1.0 + m[2, 2] - m[0, 0] - m[1, 1]) * 2.0
            w = (m[1, 0] - m[0, 1]) / s
            x = (m[0, 2] + m[2, 0]) / s
            y = (m[1, 2] + m[2, 1]) / s
            z = 0.25 * s
        return Quaternion(float(x), float(y), float(z), float(w)).normalized()

    @staticmethod
    def from_yaw_deg(yaw_deg: float) -> "Quaternion":
        """Rotation about the world vertical (+Y) axis."""
        return Quaternion.from_axis_angle((0.0, 1.0, 0.0), math.radians(yaw_deg))

    # -- algebra --
    def __mul__(self, other: "Quaternion") -> "Quaternion":
        if not isinstance(other, Quaternion):
            return NotImplemented
        x1, y1, z1, w1 = self.x, self.y, self.z, self.w
        x2, y2, z2, w2 = other.x, other.y, other.z, other.w
        return Quaternion(
            w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
            w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
            w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
            w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
        )

    @property
    def norm(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z + self.w * self.w)

    def normalized(self) -> "Quaternion":
        n = self.norm
        if n < 1e-12:
            raise ValueError("Cannot normalize a zero quaternion.")
        return Quaternion(self.x / n, self.y / n, self.z / n, self.w / n)

    def conjugate(self) -> "Quaternion":
        return Quaternion(-self.x, -self.y, -self.z, self.w)

    def inverse(self) -> "Quaternion":
        n2 = self.norm ** 2
        if n2 < 1e-24:
            raise ValueError("Cannot invert a zero quaternion.")
        return Quaternion(-self.x / n2, -self.y / n2, -self.z / n2, self.w / n2)

    def rotate(self, v: Sequence[float] | np.ndarray) -> np.ndarray:
        """Rotate a vector (3,) or a stack of vectors (N, 3)."""
        arr = np.asarray(v, dtype=np.float64)
        return arr @ self.to_matrix().T

    def to_matrix(self) -> np.ndarray:
        q = self.normalized()
        x, y, z, w = q.x, q.y, q.z, q.w
        return np.array([
            [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
            [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
            [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
        ], dtype=np.float64)

    # -- comparison / export --
    def as_list(self) -> list[float]:
        return [self.x, self.y, self.z, self.w]

    def as_array(self) -> np.ndarray:
        return np.array(self.as_list(), dtype=np.float64)

    def angle_to(self, other: "Quaternion") -> float:
        """Smallest rotation angle (radians) between two orientations."""
        d = abs(float(np.dot(self.normalized().as_array(), other.normalized().as_array())))
        return 2.0 * math.acos(min(1.0, d))

    def is_close(self, other: "Quaternion", atol: float = 1e-6) -> bool:
        # q and -q encode the same rotation
        a = self.as_array()
        b = other.as_array()
        return bool(np.allclose(a, b, atol=atol) or np.allclose(a, -b, atol=atol))
