"""
Transform Math

TRS <-> 4x4 matrix helpers used when children of an excluded node are hoisted
to the scene root and need their ancestors' transforms folded in.

Matrices are (4, 4) float64 arrays acting on column vectors; quaternions are
(x, y, z, w) like glTF.
"""

from typing import Sequence, Tuple

import numpy as np

Vec3 = Tuple[float, float, float]
Quat = Tuple[float, float, float, float]

# Largest |cos| between scaled axes still treated as orthogonal
SHEAR_TOLERANCE = 1e-6


def identity() -> np.ndarray:
    return np.eye(4)


def quat_to_rotation(q: Sequence[float]) -> np.ndarray:
    q = np.asarray(q, dtype=np.float64)
    norm = np.linalg.norm(q)
    x, y, z, w = q / norm if norm > 0 else (0.0, 0.0, 0.0, 1.0)
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
        [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
        [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
    ])


def rotation_to_quat(m: np.ndarray) -> Quat:
    """Shepperd's method on an orthonormal 3x3 matrix, w kept non-negative"""
    trace = np.trace(m)
    if trace > 0:
        s = 0.5 / np.sqrt(trace + 1.0)
        q = np.array([
            (m[2, 1] - m[1, 2]) * s,
            (m[0, 2] - m[2, 0]) * s,
            (m[1, 0] - m[0, 1]) * s,
            0.25 / s,
        ])
    else:
        # Largest diagonal entry picks the numerically stable branch
        i = int(np.argmax(np.diag(m)))
        j, k = (i + 1) % 3, (i + 2) % 3
        s = 2.0 * np.sqrt(1.0 + m[i, i] - m[j, j] - m[k, k])
        q = np.empty(4)
        q[i] = 0.25 * s
        q[j] = (m[j, i] + m[i, j]) / s
        q[k] = (m[k, i] + m[i, k]) / s
        q[3] = (m[k, j] - m[j, k]) / s
    if q[3] < 0:
        q = -q
    return tuple(float(v) for v in q)


def compose(translation: Sequence[float], rotation: Sequence[float], scale: Sequence[float]) -> np.ndarray:
    matrix = np.eye(4)
    matrix[:3, :3] = quat_to_rotation(rotation) * np.asarray(scale, dtype=np.float64)
    matrix[:3, 3] = translation
    return matrix


def multiply(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.dot(a, b)


def has_shear(matrix: np.ndarray, tolerance: float = SHEAR_TOLERANCE) -> bool:
    """True if the basis axes of ``matrix`` are not mutually orthogonal"""
    columns = matrix[:3, :3]
    lengths = np.linalg.norm(columns, axis=0)
    if np.any(lengths == 0):
        return False
    unit = columns / lengths
    gram = np.dot(unit.T, unit)
    return bool(np.max(np.abs(gram - np.eye(3))) > tolerance)


def decompose(matrix: np.ndarray) -> Tuple[Vec3, Quat, Vec3]:
    """Split an affine matrix into translation, rotation, scale

    Shear cannot be expressed as TRS and is dropped; check ``has_shear``
    first when that matters.
    """
    translation = matrix[:3, 3]
    columns = matrix[:3, :3]
    scale = np.linalg.norm(columns, axis=0)
    if np.linalg.det(columns) < 0:
        scale[0] = -scale[0]

    rotation = columns / np.where(scale == 0, 1.0, scale)
    return (
        tuple(float(v) for v in translation),
        rotation_to_quat(rotation),
        tuple(float(v) for v in scale),
    )


def combine(parent: np.ndarray, translation, rotation, scale) -> Tuple[Tuple[Vec3, Quat, Vec3], bool]:
    """Fold a parent matrix into a local TRS

    Returns the new TRS and whether it reproduces the world matrix exactly
    (False when the product carries shear).
    """
    world = multiply(parent, compose(translation, rotation, scale))
    return decompose(world), not has_shear(world)
