# transpod

Building blocks for estimating the pose of transparent objects from their
silhouettes: rigid-body geometry, geometric hashing and similarity matching
of 2D contours, and readers and writers for point clouds and PNM images.
It is a library with no command-line entry point, and it depends only on
numpy.

## Installation

```
pip install .
```

With the test dependencies:

```
pip install .[test]
```

## Modules

### `transpod.geometry`

- `rodrigues(rvec)` and `rotation_to_rvec(rotation)` convert between rotation
  vectors and 3x3 rotation matrices.
- `create_projective_matrix(rotation, translation)` builds a 4x4
  `[R t; 0 1]` matrix; the rotation may be a matrix or a vector.
- `get_rvec_tvec` and `get_rotation_translation` split such a matrix.
- `get_transformation_matrix(rt_obj2cam, rvec_object, tvec_object)` expresses
  an object-frame motion in the camera frame.
- `transform_point(rt, point)` applies a 4x4 transform with the homogeneous
  division; `project_3d_points(points, rvec, tvec)` rotates and translates
  many points.
- `is_point_inside(shape, point)`, `interpolated_value(image, point)`
  (bilinear sampling), `hcat(a, b)` and `sgn(value)` are small helpers.

### `transpod.pointcloud_io`

- `write_point_cloud(filename, points)` writes one comma separated point per
  line.
- `read_point_cloud(filename, with_normals=False)` reads points separated by
  whitespace or commas, skipping the header of a `.ply` file; with normals it
  returns a pair of arrays.
- `read_ply_cloud(filename)` reads a PLY file with either 3 properties
  (points) or 9 (points, colours, normals) and returns a `PlyCloud`.
- `read_lines_in_file(filename)` returns the whitespace separated words of a
  file.
- `invalid_depth_mask(depth, registration_mask)` marks missing depth (NaN for
  float maps, zero otherwise) as 255, except where the registration mask is
  set.

### `transpod.pnm`

Loads and saves images as numpy arrays: PBM (`load_pbm`, `save_pbm`), PGM
(`load_pgm`, `save_pgm`), PPM (`load_ppm`, `save_ppm`) and raw VLIB
(`load_vlib(path, dtype)`, `save_vlib`). A file of the wrong kind, a maximum
value above 255 or truncated data raises `PnmError`.

### `transpod.silhouette`

- `Silhouette(edgels, initial_pose)` holds the 2D contour of a projected
  object.
  - `generate_geometric_hash(silhouette_index, table, granularity, basis_step,
    min_distance)` fills a `GeometricHashTable` with every basis of the
    downsampled edgels and returns the matrix of inverse distances between
    them.
  - `match(test_edgels, icp_iterations, min_scale_change)` aligns the contour
    with test edgels by similarity ICP.
  - `camera2object(similarity_cam)` re-expresses a similarity about the
    silhouette centre.
- `GeometricHashTable` is a multimap from integer pairs to `HashEntry`
  tuples, with `add`, `lookup`, `items`, `in` and `len`.
- Affine helpers: `affine2homography`, `homography2affine`,
  `compose_affine_transformations`, `find_basis_similarity`, `apply_affine`,
  `normalization_transform`, `estimate_similarity`, `estimate_scale` and
  `refine_similarity_icp`.

## Example

```python
import numpy as np
from transpod.geometry import create_projective_matrix, transform_point
from transpod.silhouette import Silhouette, GeometricHashTable

rt = create_projective_matrix(np.zeros(3), np.array([0.0, 0.0, 1.0]))
print(transform_point(rt, (1.0, 2.0, 3.0)))  # -> [1. 2. 4.]

angles = np.linspace(0, 2 * np.pi, 40, endpoint=False)
contour = np.stack([100 + 30 * np.cos(angles), 80 + 20 * np.sin(angles)], axis=1)
silhouette = Silhouette(contour, initial_pose=None)
table = GeometricHashTable()
silhouette.generate_geometric_hash(0, table, granularity=0.04, basis_step=2, min_distance=0.1)
print(len(table))
```

## What it does not do

- It does not estimate the table plane from a depth map, a point cloud or a
  fiducial pattern, nor compute a table hull.
- It does not segment glass, detect objects or turn a 2D similarity into a
  3D pose.
- It has no drawing, windows or other display of images, and no command to
  run.

## Tests

```
pytest
```