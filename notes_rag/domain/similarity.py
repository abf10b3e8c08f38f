"""Vector math used by the vector store's ranking step.

All functions accept any float sequence. Mismatched lengths are compared over
the shared prefix; the excess of the longer vector is ignored.
"""
from __future__ import annotations

from typing import List, Sequence

import numpy as np


def _as_array(v: Sequence[float]) -> np.ndarray:
    return np.asarray(v, dtype=np.float64)


def normalize(v: Sequence[float]) -> List[float]:
    """Scale ``v`` to unit Euclidean length; zero vectors are returned unchanged."""
    arr = _as_array(v)
    norm = float(np.linalg.norm(arr))
    if norm == 0.0:
        return [float(x) for x in v]
    return (arr / norm).tolist()


def dot_product(a: Sequence[float], b: Sequence[float]) -> float:
    n = min(len(a), len(b))
    return float(np.dot(_as_array(a)[:n], _as_array(b)[:n]))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    n = min(len(a), len(b))
    x = _as_array(a)[:n]
    y = _as_array(b)[:n]
    na = float(np.linalg.norm(x))
    nb = float(np.linalg.norm(y))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return float(np.dot(x, y)) / (na * nb)


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    n = min(len(a), len(b))
    return float(np.linalg.norm(_as_array(a)[:n] - _as_array(b)[:n]))


def fit_dimension(v: Sequence[float], dim: int) -> List[float]:
    """Zero-pad or truncate ``v`` to exactly ``dim`` values."""
    values = [float(x) for x in v]
    if len(values) < dim:
        return values + [0.0] * (dim - len(values))
    return values[:dim]


def normalize_rows(matrix: np.ndarray) -> np.ndarray:
    """Row-wise unit scaling; all-zero rows stay zero."""
    if matrix.size == 0:
        return matrix
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    safe = np.where(norms == 0.0, 1.0, norms)
    return matrix / safe
