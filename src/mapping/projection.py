"""Projection of lidar points into the camera image.

The camera model is the usual rectified stereo setup: a 3x4
projection matrix `P_rect`, a rectifying rotation `R_rect` and the
lidar-to-camera extrinsic transform `RT`.  The three are multiplied
once into a single 3x4 matrix which maps homogeneous lidar coordinates
to homogeneous pixel coordinates.
"""

from typing import Tuple

import numpy as np

from src.common.data_structures import DegenerateGeometryError, LidarPoint


def _as_4x4(matrix: np.ndarray, name: str) -> np.ndarray:
    """Pad a 3x3 or 3x4 matrix to a 4x4 homogeneous transform."""
    matrix = np.asarray(matrix, dtype=float)
    if matrix.shape == (4, 4):
        return matrix
    if matrix.shape not in ((3, 3), (3, 4)):
        raise ValueError(f"{name} must be 3x3, 3x4 or 4x4, got {matrix.shape}")
    padded = np.eye(4)
    padded[:3, :matrix.shape[1]] = matrix
    return padded


def combined_transform(p_rect: np.ndarray, r_rect: np.ndarray, rt: np.ndarray) -> np.ndarray:
    """Build the 3x4 lidar-to-pixel transform ``P_rect @ R_rect @ RT``.

    Parameters
    ----------
    p_rect : numpy.ndarray
        3x4 rectified projection matrix.
    r_rect : numpy.ndarray
        Rectifying rotation, 3x3 or already padded to 4x4.
    rt : numpy.ndarray
        Lidar-to-camera extrinsics, 3x4 or 4x4.

    Returns
    -------
    numpy.ndarray
        3x4 combined transform.
    """
    p_rect = np.asarray(p_rect, dtype=float)
    if p_rect.shape != (3, 4):
        raise ValueError(f"P_rect must be 3x4, got {p_rect.shape}")
    return p_rect @ _as_4x4(r_rect, "R_rect") @ _as_4x4(rt, "RT")


def project_point(point: LidarPoint, transform: np.ndarray) -> Tuple[float, float]:
    """Project a single lidar point to pixel coordinates.

    Raises
    ------
    DegenerateGeometryError
        If the transformed depth is exactly zero.
    """
    X = np.array([point.x, point.y, point.z, 1.0])
    Y = transform @ X
    if Y[2] == 0.0:
        raise DegenerateGeometryError(
            f"zero depth when projecting point ({point.x}, {point.y}, {point.z})"
        )
    return float(Y[0] / Y[2]), float(Y[1] / Y[2])


def project_points(coords: np.ndarray, transform: np.ndarray) -> np.ndarray:
    """Project an array of points to pixel coordinates.

    Parameters
    ----------
    coords : numpy.ndarray
        Array of shape (N, M) with XYZ in columns 0-2.
    transform : numpy.ndarray
        3x4 combined transform.

    Returns
    -------
    numpy.ndarray
        Array of shape (N, 2) with (u, v).  Rows whose transformed depth
        is zero or negative (at or behind the image plane) are NaN.
    """
    coords = np.asarray(coords, dtype=float)
    if coords.size == 0:
        return np.empty((0, 2))
    homogeneous = np.column_stack([coords[:, :3], np.ones(len(coords))])
    Y = homogeneous @ transform.T
    depth = Y[:, 2]
    uv = np.full((len(coords), 2), np.nan)
    valid = depth > 0.0
    uv[valid] = Y[valid, :2] / depth[valid, None]
    return uv
