"""Geometry, silhouette hashing and matching, point cloud and PNM image I/O for transparent object pose estimation."""

__version__ = "0.1.0"
__all__ = ["geometry", "pointcloud_io", "pnm", "silhouette"]