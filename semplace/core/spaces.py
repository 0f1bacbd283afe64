"""Conversions between Local, Semantic Local Space (SLS) and World.

Conventions (all rotations are :class:`Quaternion` values):

- ``R_ls``: Local → SLS, one per asset (``AssetFrame.local_to_sls``)
- ``R_wl``: an instance's world rotation
- ``R_ws``: SLS → World, ``R_wl * R_ls⁻¹``

Normals are rotated only, never scaled. SLS offsets are stored unscaled and
scale is applied exactly once, on the way to World. A zero scale component
collapses that axis to zero instead of dividing by it.
"""
from __future__ import annotations
from typing import Sequence, Union
import numpy as np

from .quaternion import Quaternion
from .utils import vec3, safe_divide

Vec = Union[Sequence[float], np.ndarray]


def sls_to_world_rotation(r_wl: Quaternion, r_ls: Quaternion) -> Quaternion:
    return r_wl * r_ls.inverse()


def local_to_sls(v_local: Vec, r_ls: Quaternion) -> np.ndarray:
    """Offsets and normals alike: rotation only, scale untouched."""
    return r_ls.rotate(vec3(v_local, "local vector"))


def normal_to_world(n_sls: Vec, r_ws: Quaternion) -> np.ndarray:
    return r_ws.rotate(vec3(n_sls, "normal"))


def offset_to_world(off_sls: Vec, r_ws: Quaternion, scale: Vec) -> np.ndarray:
    return r_ws.rotate(vec3(scale, "scale") * vec3(off_sls, "offset"))


def point_to_world(off_sls: Vec, r_ws: Quaternion, scale: Vec, pivot_world: Vec) -> np.ndarray:
    return vec3(pivot_world, "pivot") + offset_to_world(off_sls, r_ws, scale)


def world_to_sls(off_world: Vec, r_wl: Quaternion, scale: Vec, r_ls: Quaternion) -> np.ndarray:
    """Inverse of :func:`offset_to_world` for an offset measured from the pivot."""
    local_scaled = r_wl.inverse().rotate(vec3(off_world, "world offset"))
    local = safe_divide(local_scaled, vec3(scale, "scale"))
    return r_ls.rotate(local)


def world_to_sls_normal(n_world: Vec, r_wl: Quaternion, r_ls: Quaternion) -> np.ndarray:
    return r_ls.rotate(r_wl.inverse().rotate(vec3(n_world, "normal")))
