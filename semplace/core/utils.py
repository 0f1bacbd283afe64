from __future__ import annotations
import numpy as np
import logging
from typing import Sequence

def get_logger(name: str = "semplace") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter("[%(levelname)s] %(message)s")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger

def vec3(v: Sequence[float] | np.ndarray, name: str = "vector") -> np.ndarray:
    """Coerce ``v`` to a finite float64 array of shape (3,).

    NaN/inf or a wrong shape is a caller bug, so it raises instead of
    returning a result value.
    """
    arr = np.asarray(v, dtype=np.float64).reshape(-1)
    if arr.shape != (3,):
        raise ValueError(f"{name} must have 3 components, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} contains non-finite values: {arr.tolist()}")
    return arr

def is_zero(v: np.ndarray, eps: float = 1e-9) -> bool:
    return float(np.linalg.norm(v)) < eps

def safe_divide(num: np.ndarray, den: np.ndarray) -> np.ndarray:
    # Zero scale collapses the axis to zero.
    out = np.zeros_like(num, dtype=np.float64)
    np.divide(num, den, out=out, where=den != 0)
    return out

def as_float_list(v: np.ndarray, ndigits: int = 6) -> list[float]:
    return [round(float(x), ndigits) + 0.0 for x in v]
