import math

import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from transpod.silhouette import (
    GeometricHashTable,
    HashEntry,
    Silhouette,
    affine2homography,
    apply_affine,
    compose_affine_transformations,
    estimate_scale,
    estimate_similarity,
    find_basis_similarity,
    homography2affine,
    normalization_transform,
    refine_similarity_icp,
)

coord = st.floats(min_value=-100, max_value=100, allow_nan=False)


def _shape(n=40):
    t = np.linspace(0, 2 * np.pi, n, endpoint=False)
    return np.stack([3 * np.cos(t) + 0.5 * np.cos(3 * t), 2 * np.sin(t) + 0.3 * np.sin(2 * t)], axis=1) + [5, 7]


def _similarity(angle, scale, tx, ty):
    c, s = math.cos(angle) * scale, math.sin(angle) * scale
    return np.array([[c, -s, tx], [s, c, ty]])


def test_affine2homography_last_row():
    a = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    h = affine2homography(a)
    assert h.shape == (3, 3)
    np.testing.assert_array_equal(h[2], [0.0, 0.0, 1.0])
    np.testing.assert_array_equal(homography2affine(h), a)


def test_affine2homography_rejects_wrong_shape():
    with pytest.raises(ValueError):
        affine2homography(np.eye(3))
    with pytest.raises(ValueError):
        homography2affine(np.eye(2))


@settings(max_examples=30)
@given(coord, coord, st.floats(0.1, 5), st.floats(-3, 3))
def test_compose_applies_first_then_second(tx, ty, scale, angle):
    first = _similarity(angle, scale, tx, ty)
    second = _similarity(-2 * angle, 1 / scale, ty, tx)
    points = _shape(10)
    composed = compose_affine_transformations(first, second)
    np.testing.assert_allclose(
        apply_affine(points, composed), apply_affine(apply_affine(points, first), second), atol=1e-6
    )


@settings(max_examples=50)
@given(coord, coord, coord, coord)
def test_basis_similarity_maps_endpoints(x1, y1, x2, y2):
    if math.hypot(x2 - x1, y2 - y1) < 1e-2:
        return_value = None
        with pytest.raises(ValueError):
            if math.hypot(x2 - x1, y2 - y1) <= 1e-4:
                find_basis_similarity((x1, y1), (x2, y2))
            else:
                raise ValueError
        assert return_value is None
        return
    m = find_basis_similarity((x1, y1), (x2, y2))
    mapped = apply_affine([(x1, y1), (x2, y2)], m)
    np.testing.assert_allclose(mapped, [[-0.5, 0.0], [0.5, 0.0]], atol=1e-6)


def test_basis_similarity_rejects_coincident_points():
    with pytest.raises(ValueError):
        find_basis_similarity((1.0, 1.0), (1.0, 1.0))


def test_normalization_transform_properties():
    points = _shape()
    m = normalization_transform(points)
    normalized = apply_affine(points, m)
    np.testing.assert_allclose(normalized.mean(axis=0), [0.0, 0.0], atol=1e-9)
    std = normalized.std(axis=0)
    assert math.isclose(float(std @ std), 1.0, rel_tol=1e-9)


def test_normalization_transform_empty_and_degenerate():
    assert normalization_transform(np.zeros((0, 2))) is None
    with pytest.raises(ValueError):
        normalization_transform([(1.0, 1.0), (1.0, 1.0)])


def test_estimate_similarity_recovers_transform():
    truth = _similarity(0.4, 1.7, -3.0, 2.5)
    src = _shape()
    found = estimate_similarity(src, apply_affine(src, truth))
    np.testing.assert_allclose(found, truth, atol=1e-9)


def test_estimate_similarity_degenerate_cases():
    assert estimate_similarity([(0, 0), (1, 1)], [(0, 0), (1, 1)]) is None
    assert estimate_similarity([(1, 1)] * 4, [(2, 2)] * 4) is None
    with pytest.raises(ValueError):
        estimate_similarity([(0, 0)] * 3, [(0, 0)] * 4)


def test_estimate_scale_follows_scaling():
    points = _shape()
    identity = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
    doubled = 2.0 * identity
    assert math.isclose(estimate_scale(points, doubled), 16 * estimate_scale(points, identity), rel_tol=1e-9)


def test_icp_keeps_exact_transformation():
    truth = _similarity(0.3, 1.2, 4.0, -1.0)
    src = _shape()
    result = refine_similarity_icp(src, apply_affine(src, truth), truth, 10, 0.001)
    np.testing.assert_allclose(result, truth, atol=1e-8)


def test_icp_reverts_when_scale_change_too_small():
    src = _shape()
    dst = apply_affine(src, _similarity(0.0, 0.5, 0.0, 0.0))
    initial = _similarity(0.0, 0.6, 0.0, 0.0)
    result = refine_similarity_icp(src, dst, initial, 20, 2.0)
    np.testing.assert_array_equal(result, initial)


def test_icp_requires_initial_transformation():
    with pytest.raises(ValueError):
        refine_similarity_icp(_shape(), _shape(), None, 5, 0.1)


def test_hash_table_add_and_lookup():
    table = GeometricHashTable()
    table.add((1, 2), (0, 3, 4))
    table.add((1, 2), (1, 5, 6))
    table.add((-1, -2), (0, 4, 3))
    assert len(table) == 3
    assert table.lookup((1, 2)) == [HashEntry(0, 3, 4), HashEntry(1, 5, 6)]
    assert table.lookup((9, 9)) == []
    assert (9, 9) not in table


def test_silhouette_size_and_center():
    points = _shape()
    silhouette = Silhouette(points, initial_pose="pose")
    assert silhouette.size() == len(points)
    np.testing.assert_allclose(silhouette.center, points.mean(axis=0))
    assert silhouette.initial_pose == "pose"
    with pytest.raises(ValueError):
        silhouette.downsampled_size()


def test_empty_silhouette_has_no_size():
    with pytest.raises(ValueError):
        Silhouette(np.zeros((0, 2)), None).size()


def test_geometric_hash_is_symmetric():
    square = [(0.0, 0.0), (2.0, 0.0), (2.0, 2.0), (0.0, 2.0), (1.0, 3.0), (3.0, 1.0)]
    silhouette = Silhouette(square, None)
    table = GeometricHashTable()
    scale = silhouette.generate_geometric_hash(7, table, 0.25, 1, 0.1)
    n = silhouette.downsampled_size()
    assert n == len(square)
    assert len(table) == 2 * (n * (n - 1) // 2) * (n - 2)
    for (x, y), entry in table.items():
        assert entry.silhouette == 7
        assert HashEntry(7, entry.second, entry.first) in table.lookup((-x, -y))
    np.testing.assert_allclose(scale, scale.T)
    np.testing.assert_allclose(np.diag(scale), 1.0)
    assert math.isclose(scale[0, 1], 0.5, rel_tol=1e-6)


def test_geometric_hash_downsampling_and_distance_filter():
    points = _shape(8)
    silhouette = Silhouette(points, None)
    table = GeometricHashTable()
    silhouette.generate_geometric_hash(0, table, 0.1, 2, 1000.0)
    assert silhouette.downsampled_size() == 4
    assert len(table) == 0


def test_match_recovers_scaled_translated_copy():
    points = _shape()
    test = 1.5 * points + [10.0, -5.0]
    silhouette = Silhouette(points, None)
    result = silhouette.match(test, 10, 0.001)
    np.testing.assert_allclose(apply_affine(points, result), test, atol=1e-6)


def test_match_rejects_empty_test():
    with pytest.raises(ValueError):
        Silhouette(_shape(), None).match(np.zeros((0, 2)), 5, 0.1)


def test_camera2object_rotation_about_center_fixes_origin():
    points = _shape()
    silhouette = Silhouette(points, None)
    cx, cy = silhouette.center
    rotation = _similarity(0.7, 1.0, 0.0, 0.0)
    about_center = compose_affine_transformations(
        compose_affine_transformations(np.array([[1.0, 0, -cx], [0, 1.0, -cy]]), rotation),
        np.array([[1.0, 0, cx], [0, 1.0, cy]]),
    )
    obj = silhouette.camera2object(about_center)
    np.testing.assert_allclose(apply_affine([(0.0, 0.0)], obj), [[0.0, 0.0]], atol=1e-9)
    np.testing.assert_allclose(obj[:, :2], rotation[:, :2], atol=1e-9)


def test_camera2object_keeps_pure_translation():
    silhouette = Silhouette(_shape(), None)
    shift = np.array([[1.0, 0.0, 3.0], [0.0, 1.0, -2.0]])
    np.testing.assert_allclose(silhouette.camera2object(shift), shift, atol=1e-9)