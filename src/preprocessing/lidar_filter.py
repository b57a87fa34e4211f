"""Lidar cropping utilities.

Before association the point cloud is reduced to the corridor directly
ahead of the vehicle: points outside a forward range, too far to the
side, above or below the expected object height, or with very low
reflectivity are removed.  This keeps road surface returns and
roadside clutter out of the region point sets.

Point clouds are stored as `(N, 4)` arrays with columns x, y, z and
reflectivity, the layout of KITTI velodyne scans.
"""

from typing import List

import numpy as np

from src.common.data_structures import LidarPoint


def crop_lidar_points(
    points: np.ndarray,
    min_x: float = 2.0,
    max_x: float = 20.0,
    max_y: float = 2.0,
    min_z: float = -1.5,
    max_z: float = -0.9,
    min_r: float = 0.1,
) -> np.ndarray:
    """Keep only points inside the ego-lane box.

    Parameters
    ----------
    points : numpy.ndarray
        Array of shape (N, 4) with x, y, z and reflectivity.
    min_x, max_x : float, optional
        Forward range in metres.
    max_y : float, optional
        Maximum absolute lateral offset in metres.
    min_z, max_z : float, optional
        Height range in metres.
    min_r : float, optional
        Minimum reflectivity.

    Returns
    -------
    numpy.ndarray
        Cropped array of points.
    """
    if points.ndim != 2 or points.shape[1] < 4:
        raise ValueError("points must have at least four columns (x,y,z,r)")
    x, y, z, r = points[:, 0], points[:, 1], points[:, 2], points[:, 3]
    mask = (
        (x >= min_x) & (x <= max_x) &
        (np.abs(y) <= max_y) &
        (z >= min_z) & (z <= max_z) &
        (r >= min_r)
    )
    return points[mask]


def lidar_array_to_points(points: np.ndarray) -> List[LidarPoint]:
    """Convert an (N, 3) or (N, 4) array to a list of `LidarPoint`."""
    if points.size == 0:
        return []
    if points.ndim != 2 or points.shape[1] < 3:
        raise ValueError("points must have at least three columns (x,y,z)")
    if points.shape[1] > 3:
        return [LidarPoint(float(p[0]), float(p[1]), float(p[2]), float(p[3])) for p in points]
    return [LidarPoint(float(p[0]), float(p[1]), float(p[2])) for p in points]


def lidar_points_to_array(points: List[LidarPoint]) -> np.ndarray:
    """Inverse of `lidar_array_to_points`."""
    if not points:
        return np.empty((0, 4))
    return np.array([(p.x, p.y, p.z, p.r) for p in points], dtype=float)
