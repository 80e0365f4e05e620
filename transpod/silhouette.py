"""Object silhouettes: geometric hashing of 2D edgels and similarity matching."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Iterator, NamedTuple

import numpy as np

_BASIS_EPS = 1e-4
_SCALE_EPS = 1e-6
_MIN_SIMILARITY_POINTS = 3
_NN_CHUNK = 1024


class HashEntry(NamedTuple):
    """A basis stored in the geometric hash table."""

    silhouette: int
    first: int
    second: int


class GeometricHashTable:
    """Multimap from quantised 2D coordinates to the bases that produced them."""

    def __init__(self) -> None:
        self._buckets: dict[tuple[int, int], list[HashEntry]] = defaultdict(list)
        self._count = 0

    def add(self, key, value) -> None:
        """Store value (silhouette, first, second) under the integer pair key."""
        x, y = key
        silhouette, first, second = value
        self._buckets[(int(x), int(y))].append(HashEntry(int(silhouette), int(first), int(second)))
        self._count += 1

    def lookup(self, key) -> list[HashEntry]:
        """Return every entry stored under key, in insertion order."""
        x, y = key
        return list(self._buckets.get((int(x), int(y)), ()))

    def items(self) -> Iterator[tuple[tuple[int, int], HashEntry]]:
        """Iterate over all (key, entry) pairs."""
        for key, entries in self._buckets.items():
            for entry in entries:
                yield key, entry

    def __contains__(self, key) -> bool:
        x, y = key
        return bool(self._buckets.get((int(x), int(y))))

    def __len__(self) -> int:
        return self._count


def _as_points(points) -> np.ndarray:
    array = np.asarray(points, dtype=np.float64)
    if array.size == 0:
        return np.zeros((0, 2))
    if array.shape[-1] != 2:
        raise ValueError(f"points must have 2 coordinates, got shape {array.shape}")
    return array.reshape(-1, 2)


def _as_affine(transformation) -> np.ndarray:
    matrix = np.asarray(transformation, dtype=np.float64)
    if matrix.shape != (2, 3):
        raise ValueError(f"affine transformation must be 2x3, got shape {matrix.shape}")
    return matrix


def affine2homography(transformation) -> np.ndarray:
    """Extend a 2x3 affine transformation to a 3x3 homography."""
    homography = np.eye(3)
    homography[:2, :] = _as_affine(transformation)
    return homography


def homography2affine(homography) -> np.ndarray:
    """Take the top two rows of a 3x3 homography as an affine transformation."""
    matrix = np.asarray(homography, dtype=np.float64)
    if matrix.shape != (3, 3):
        raise ValueError(f"homography must be 3x3, got shape {matrix.shape}")
    return matrix[:2, :].copy()


def compose_affine_transformations(first, second) -> np.ndarray:
    """Return the affine transformation that applies first, then second."""
    return homography2affine(affine2homography(second) @ affine2homography(first))


def _invert_affine(transformation) -> np.ndarray:
    return homography2affine(np.linalg.inv(affine2homography(transformation)))


def apply_affine(points, transformation) -> np.ndarray:
    """Apply a 2x3 affine transformation to an (N, 2) array of points."""
    matrix = _as_affine(transformation)
    return _as_points(points) @ matrix[:, :2].T + matrix[:, 2]


def find_basis_similarity(pt1, pt2) -> np.ndarray:
    """Similarity that maps pt1 to (-0.5, 0) and pt2 to (0.5, 0)."""
    p1 = np.asarray(pt1, dtype=np.float64).reshape(2)
    p2 = np.asarray(pt2, dtype=np.float64).reshape(2)
    diff = p2 - p1
    distance = float(np.hypot(diff[0], diff[1]))
    if distance <= _BASIS_EPS:
        raise ValueError("basis points coincide")
    cos_angle, sin_angle = diff / distance
    rotation = np.array([[cos_angle, sin_angle, 0.0], [-sin_angle, cos_angle, 0.0]])
    centre = -0.5 * (p1 + p2)
    translation = np.array([[1.0, 0.0, centre[0]], [0.0, 1.0, centre[1]]])
    return compose_affine_transformations(translation, rotation) / distance


def normalization_transform(points) -> np.ndarray | None:
    """Transform moving points to zero mean and unit total standard deviation.

    Returns None when there are no points.
    """
    cloud = _as_points(points)
    if len(cloud) == 0:
        return None
    mean = cloud.mean(axis=0)
    std = cloud.std(axis=0)
    spread = float(np.sqrt(std @ std))
    if spread == 0.0:
        raise ValueError("points have no spread")
    scale = 1.0 / spread
    return scale * np.array([[1.0, 0.0, -mean[0]], [0.0, 1.0, -mean[1]]])


def estimate_similarity(src, dst) -> np.ndarray | None:
    """Least-squares similarity (rotation, uniform scale, translation) from src to dst.

    Returns None when there are too few points or the points are degenerate.
    """
    source = _as_points(src)
    target = _as_points(dst)
    if source.shape != target.shape:
        raise ValueError("src and dst must hold the same number of points")
    if len(source) < _MIN_SIMILARITY_POINTS:
        return None
    n = len(source)
    system = np.zeros((2 * n, 4))
    system[0::2, 0] = source[:, 0]
    system[0::2, 1] = -source[:, 1]
    system[0::2, 2] = 1.0
    system[1::2, 0] = source[:, 1]
    system[1::2, 1] = source[:, 0]
    system[1::2, 3] = 1.0
    rhs = target.reshape(-1)
    if np.linalg.matrix_rank(system) < 4:
        return None
    (a, b, tx, ty), *_ = np.linalg.lstsq(system, rhs, rcond=None)
    return np.array([[a, -b, tx], [b, a, ty]])


def estimate_scale(points, transformation) -> float:
    """Determinant of the covariance of the transformed points."""
    transformed = apply_affine(points, transformation)
    centred = transformed - transformed.mean(axis=0)
    covariance = centred.T @ centred / len(transformed)
    return float(np.linalg.det(covariance))


def _nearest(queries: np.ndarray, reference: np.ndarray) -> np.ndarray:
    indices = []
    for start in range(0, len(queries), _NN_CHUNK):
        chunk = queries[start:start + _NN_CHUNK]
        d2 = ((chunk[:, None, :] - reference[None, :, :]) ** 2).sum(axis=2)
        indices.append(np.argmin(d2, axis=1))
    return np.concatenate(indices) if indices else np.zeros(0, dtype=int)


def refine_similarity_icp(src, dst, transformation, iterations, min_scale_change) -> np.ndarray:
    """Refine a similarity from src to dst by iterated closest points.

    The initial transformation is returned instead when the refined one
    shrinks the point spread by more than min_scale_change.
    """
    if transformation is None or np.asarray(transformation).size == 0:
        raise ValueError("an initial transformation is required")
    source = _as_points(src)
    target = _as_points(dst)
    if len(target) == 0:
        raise ValueError("dst has no points")
    initial = _as_affine(transformation).copy()
    current = initial.copy()

    for _ in range(iterations):
        transformed = apply_affine(source, current)
        corresponding = target[_nearest(transformed, target)]
        step = estimate_similarity(transformed, corresponding)
        if step is None:
            break
        current = compose_affine_transformations(current, step)

    src_scale = estimate_scale(source, initial)
    final_scale = estimate_scale(source, current)
    if src_scale > _SCALE_EPS and final_scale / src_scale < min_scale_change:
        return initial
    return current


class Silhouette:
    """Edgels of an object contour seen from a known initial pose."""

    def __init__(self, edgels, initial_pose: Any) -> None:
        self.edgels = _as_points(edgels)
        self.initial_pose = initial_pose
        self.downsampled_edgels: np.ndarray | None = None
        self.center = self.edgels.mean(axis=0) if len(self.edgels) else np.zeros(2)
        self.silhouette2normalized = normalization_transform(self.edgels)

    def size(self) -> int:
        """Number of edgels."""
        if len(self.edgels) == 0:
            raise ValueError("silhouette has no edgels")
        return len(self.edgels)

    def downsampled_size(self) -> int:
        """Number of edgels kept for hashing."""
        if self.downsampled_edgels is None or len(self.downsampled_edgels) == 0:
            raise ValueError("silhouette has not been hashed")
        return len(self.downsampled_edgels)

    def generate_geometric_hash(self, silhouette_index, table, granularity, basis_step, min_distance) -> np.ndarray:
        """Add every basis of the downsampled edgels to table.

        Returns the canonic scale matrix: inverse distances between
        downsampled edgels, or 1 where they are no farther apart than min_distance.
        """
        points = self.edgels[::basis_step].copy()
        self.downsampled_edgels = points
        count = len(points)

        distances = np.linalg.norm(points[:, None, :] - points[None, :, :], axis=2)
        canonic_scale = np.ones((count, count), dtype=np.float32)
        far = distances > min_distance
        canonic_scale[far] = 1.0 / distances[far]

        inverted_granularity = 1.0 / granularity
        for first in range(count):
            for second in range(first + 1, count):
                if distances[first, second] < min_distance:
                    continue
                similarity = find_basis_similarity(points[first], points[second])
                keys = np.rint(apply_affine(points, similarity) * inverted_granularity).astype(int)
                basis = (silhouette_index, first, second)
                inverted_basis = (silhouette_index, second, first)
                for index, (x, y) in enumerate(keys):
                    if index in (first, second):
                        continue
                    table.add((x, y), basis)
                    table.add((-x, -y), inverted_basis)
        return canonic_scale

    def match(self, test_edgels, icp_iterations, min_scale_change) -> np.ndarray:
        """Find the similarity that brings this silhouette onto test_edgels."""
        test = _as_points(test_edgels)
        test2normalized = normalization_transform(test)
        if test2normalized is None or self.silhouette2normalized is None:
            raise ValueError("cannot match empty edgel sets")
        normalized2test = _invert_affine(test2normalized)
        transformation = compose_affine_transformations(self.silhouette2normalized, normalized2test)
        return refine_similarity_icp(self.edgels, test, transformation, icp_iterations, min_scale_change)

    def camera2object(self, similarity_cam) -> np.ndarray:
        """Re-express an image similarity relative to the silhouette centre."""
        similarity = affine2homography(similarity_cam)
        cam2obj = np.eye(3)
        cam2obj[0, 2] = -self.center[0]
        cam2obj[1, 2] = -self.center[1]
        return homography2affine(cam2obj @ similarity @ np.linalg.inv(cam2obj))


__all__ = [
    "HashEntry",
    "GeometricHashTable",
    "Silhouette",
    "affine2homography",
    "homography2affine",
    "compose_affine_transformations",
    "find_basis_similarity",
    "apply_affine",
    "normalization_transform",
    "estimate_similarity",
    "estimate_scale",
    "refine_similarity_icp",
]