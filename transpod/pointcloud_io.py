"""Reading and writing point clouds, token lists and depth validity masks."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field

import numpy as np

_PLY_EXTENSION = "ply"
_END_HEADER = "end_header"
_POINT_PROPERTIES = 3
_ALL_PROPERTIES = 9
_SEPARATORS = re.compile(r"[\s,]+")


def _empty_triples(dtype) -> np.ndarray:
    return np.zeros((0, 3), dtype=dtype)


@dataclass
class PlyCloud:
    """Points of a PLY file with their optional colours and normals."""

    points: np.ndarray
    colors: np.ndarray = field(default_factory=lambda: _empty_triples(np.int32))
    normals: np.ndarray = field(default_factory=lambda: _empty_triples(np.float32))

    def __len__(self) -> int:
        return len(self.points)


def _has_ply_extension(filename) -> bool:
    return str(os.fspath(filename))[-3:] == _PLY_EXTENSION


def _tokens(text: str) -> list[str]:
    return [token for token in _SEPARATORS.split(text) if token]


def _records(tokens: list[str], stride: int) -> list[list[str]]:
    """Group tokens into full records; one or two stray tokens at the end are dropped."""
    count, leftover = divmod(len(tokens), stride)
    if leftover > 2:
        raise ValueError(
            f"incomplete record at the end of the data: {leftover} of {stride} values"
        )
    return [tokens[i * stride:(i + 1) * stride] for i in range(count)]


def _skip_plain_header(stream) -> None:
    for line in iter(stream.readline, ""):
        if line.rstrip("\n") == _END_HEADER:
            return


def write_point_cloud(filename, points) -> None:
    """Write 3D points as comma separated rows, one point per line."""
    cloud = np.asarray(points, dtype=np.float32).reshape(-1, 3)
    with open(filename, "w", encoding="utf-8") as stream:
        for x, y, z in cloud:
            stream.write(f"{float(x):.9g}, {float(y):.9g}, {float(z):.9g}\n")


def read_point_cloud(filename, with_normals=False):
    """Read points (and normals when asked) from a text or PLY file.

    Returns an (N, 3) array, or a pair of (N, 3) arrays when normals are requested.
    """
    with open(filename, encoding="utf-8") as stream:
        if _has_ply_extension(filename):
            _skip_plain_header(stream)
        body = stream.read()

    stride = 6 if with_normals else 3
    rows = [[float(value) for value in record] for record in _records(_tokens(body), stride)]
    data = np.array(rows, dtype=np.float32).reshape(-1, stride)
    points = data[:, :3].copy()
    if not with_normals:
        return points
    return points, data[:, 3:6].copy()


def read_ply_cloud(filename) -> PlyCloud:
    """Read a PLY file holding either bare points or points, colours and normals."""
    if not _has_ply_extension(filename):
        raise ValueError(f"not a PLY file: {filename}")

    element_seen = False
    properties_counted = False
    property_count = 0
    with open(filename, encoding="utf-8") as stream:
        for raw_line in iter(stream.readline, ""):
            line = raw_line.rstrip("\n")
            if not element_seen:
                element_seen = "element" in line
            elif not properties_counted:
                if "property" in line:
                    property_count += 1
                else:
                    properties_counted = True
            if line == _END_HEADER:
                break
        body = stream.read()

    if property_count not in (_POINT_PROPERTIES, _ALL_PROPERTIES):
        raise ValueError(
            f"expected {_POINT_PROPERTIES} or {_ALL_PROPERTIES} vertex properties, "
            f"found {property_count}"
        )

    records = _records(_tokens(body), property_count)
    points = np.array(
        [[float(value) for value in record[:3]] for record in records], dtype=np.float32
    ).reshape(-1, 3)
    if property_count == _POINT_PROPERTIES:
        return PlyCloud(points)

    colors = np.array(
        [[int(value) for value in record[3:6]] for record in records], dtype=np.int32
    ).reshape(-1, 3)
    normals = np.array(
        [[float(value) for value in record[6:9]] for record in records], dtype=np.float32
    ).reshape(-1, 3)
    return PlyCloud(points, colors, normals)


def read_lines_in_file(filename) -> list[str]:
    """Return the whitespace separated words of a file, in order."""
    with open(filename, encoding="utf-8") as stream:
        return stream.read().split()


def invalid_depth_mask(depth, registration_mask) -> np.ndarray:
    """Mark pixels with missing depth (NaN for float maps, zero otherwise) as 255.

    Pixels where the registration mask is set are never marked.
    """
    depth_map = np.asarray(depth)
    registration = np.asarray(registration_mask)
    if registration.size == 0:
        raise ValueError("registration mask is empty")
    if registration.shape != depth_map.shape:
        raise ValueError(
            f"registration mask shape {registration.shape} differs from depth shape {depth_map.shape}"
        )
    if registration.dtype != np.uint8:
        raise ValueError(f"registration mask must be uint8, got {registration.dtype}")

    if depth_map.dtype in (np.float32, np.float64):
        invalid = np.isnan(depth_map)
    else:
        invalid = depth_map == 0
    invalid &= registration == 0
    return np.where(invalid, 255, 0).astype(np.uint8)


__all__ = [
    "PlyCloud",
    "write_point_cloud",
    "read_point_cloud",
    "read_ply_cloud",
    "read_lines_in_file",
    "invalid_depth_mask",
]