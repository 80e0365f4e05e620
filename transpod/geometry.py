"""Rigid-body geometry helpers: rotations, projective matrices and point transforms."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

_SMALL_ANGLE = 1e-5


def _as_vector3(value) -> np.ndarray:
    vector = np.asarray(value, dtype=np.float64).reshape(-1)
    if vector.size != 3:
        raise ValueError(f"expected 3 components, got {vector.size}")
    return vector


def _as_matrix(value, rows: int, cols: int, name: str) -> np.ndarray:
    matrix = np.asarray(value, dtype=np.float64)
    if matrix.shape != (rows, cols):
        raise ValueError(f"{name} must be {rows}x{cols}, got shape {matrix.shape}")
    return matrix


def rodrigues(rvec) -> np.ndarray:
    """Convert a rotation vector (axis times angle) to a 3x3 rotation matrix."""
    r = _as_vector3(rvec)
    theta = float(np.linalg.norm(r))
    if theta < np.finfo(np.float64).eps:
        return np.eye(3)
    axis = r / theta
    c, s = math.cos(theta), math.sin(theta)
    skew = np.array(
        [
            [0.0, -axis[2], axis[1]],
            [axis[2], 0.0, -axis[0]],
            [-axis[1], axis[0], 0.0],
        ]
    )
    return c * np.eye(3) + (1.0 - c) * np.outer(axis, axis) + s * skew


def rotation_to_rvec(rotation) -> np.ndarray:
    """Convert a 3x3 rotation matrix to a rotation vector (axis times angle)."""
    matrix = _as_matrix(rotation, 3, 3, "rotation")
    u, _, vt = np.linalg.svd(matrix)
    R = u @ vt

    r = np.array([R[2, 1] - R[1, 2], R[0, 2] - R[2, 0], R[1, 0] - R[0, 1]])
    s = math.sqrt(float(r @ r) * 0.25)
    diagonal_sum = float(R[0, 0] + R[1, 1] + R[2, 2])
    c = (diagonal_sum - 1.0) * 0.5
    c = min(max(c, -1.0), 1.0)
    theta = math.acos(c)

    if s < _SMALL_ANGLE:
        if c > 0:
            return np.zeros(3)
        rx = math.sqrt(max((R[0, 0] + 1.0) * 0.5, 0.0))
        ry = math.sqrt(max((R[1, 1] + 1.0) * 0.5, 0.0)) * (-1.0 if R[0, 1] < 0 else 1.0)
        rz = math.sqrt(max((R[2, 2] + 1.0) * 0.5, 0.0)) * (-1.0 if R[0, 2] < 0 else 1.0)
        if abs(rx) < abs(ry) and abs(rx) < abs(rz) and (R[1, 2] > 0) != (ry * rz > 0):
            rz = -rz
        axis = np.array([rx, ry, rz])
        return axis * (theta / float(np.linalg.norm(axis)))

    return r * (theta / (2.0 * s))


def create_projective_matrix(rotation, translation) -> np.ndarray:
    """Build the 4x4 matrix [R, t; 0, 1] from a rotation (matrix or vector) and a translation."""
    rotation_array = np.asarray(rotation, dtype=np.float64)
    if rotation_array.shape == (3, 3):
        R = rotation_array
    else:
        R = rodrigues(rotation_array)
    rt = np.eye(4)
    rt[:3, :3] = R
    rt[:3, 3] = _as_vector3(translation)
    return rt


def get_rvec_tvec(projective_matrix) -> tuple[np.ndarray, np.ndarray]:
    """Split a 4x4 projective matrix into a rotation vector and a translation vector."""
    rt = _as_matrix(projective_matrix, 4, 4, "projective matrix")
    return rotation_to_rvec(rt[:3, :3]), rt[:3, 3].copy()


def get_rotation_translation(projective_matrix) -> tuple[np.ndarray, np.ndarray]:
    """Split a 4x4 projective matrix into a 3x3 rotation matrix and a translation vector."""
    rt = _as_matrix(projective_matrix, 4, 4, "projective matrix")
    return rt[:3, :3].copy(), rt[:3, 3].copy()


def get_transformation_matrix(rt_obj2cam, rvec_object, tvec_object) -> np.ndarray:
    """Express an object-frame motion in the camera frame: Rt_obj2cam * Rt_obj * Rt_obj2cam^-1."""
    obj2cam = _as_matrix(rt_obj2cam, 4, 4, "rt_obj2cam")
    rt_obj = create_projective_matrix(rvec_object, tvec_object)
    return obj2cam @ rt_obj @ np.linalg.pinv(obj2cam)


def transform_point(rt, point) -> np.ndarray:
    """Apply a 4x4 projective transform to a 3D point, with the homogeneous division."""
    matrix = _as_matrix(rt, 4, 4, "rt")
    homogeneous = matrix @ np.append(_as_vector3(point), 1.0)
    w = homogeneous[3]
    if abs(w) <= np.finfo(np.float64).eps:
        return np.zeros(3)
    return homogeneous[:3] / w


def project_3d_points(points, rvec, tvec) -> np.ndarray:
    """Rotate and translate 3D points: R(rvec) * p + t for each point."""
    cloud = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    R = rodrigues(rvec)
    t = _as_vector3(tvec)
    return cloud @ R.T + t


def is_point_inside(shape, point) -> bool:
    """Tell whether the pixel (x, y) lies inside an image of the given shape (rows, cols, ...)."""
    dims = shape.shape if hasattr(shape, "shape") else tuple(shape)
    rows, cols = int(dims[0]), int(dims[1])
    x, y = point
    return 0 <= x < cols and 0 <= y < rows


def interpolated_value(image, point):
    """Bilinearly interpolate an image at the sub-pixel location (x, y)."""
    data = np.asarray(image)
    px, py = float(point[0]), float(point[1])
    x0, y0 = math.floor(px), math.floor(py)
    rows, cols = data.shape[0], data.shape[1]
    if x0 < 0 or y0 < 0 or x0 + 1 >= cols or y0 + 1 >= rows:
        raise IndexError(f"point ({px}, {py}) has no full neighbourhood in a {rows}x{cols} image")
    fx, fy = px - x0, py - y0
    return (
        data[y0, x0] * (1.0 - fx) * (1.0 - fy)
        + data[y0, x0 + 1] * fx * (1.0 - fy)
        + data[y0 + 1, x0] * (1.0 - fx) * fy
        + data[y0 + 1, x0 + 1] * fx * fy
    )


def hcat(a, b) -> np.ndarray:
    """Concatenate two matrices side by side; they must have the same number of rows."""
    left, right = np.asarray(a), np.asarray(b)
    if left.ndim == 1:
        left = left.reshape(-1, 1)
    if right.ndim == 1:
        right = right.reshape(-1, 1)
    if left.shape[0] != right.shape[0]:
        raise ValueError(f"row counts differ: {left.shape[0]} and {right.shape[0]}")
    return np.hstack([left, right])


def sgn(value) -> int:
    """Return -1, 0 or 1 according to the sign of value."""
    return int(value > 0) - int(value < 0)


__all__: Sequence[str] = [
    "rodrigues",
    "rotation_to_rvec",
    "create_projective_matrix",
    "get_rvec_tvec",
    "get_rotation_translation",
    "get_transformation_matrix",
    "transform_point",
    "project_3d_points",
    "is_point_inside",
    "interpolated_value",
    "hcat",
    "sgn",
]