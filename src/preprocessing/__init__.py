"""Preprocessing package.

Prepares raw lidar scans for association with camera detections.
"""

from .lidar_filter import crop_lidar_points, lidar_array_to_points, lidar_points_to_array

__all__ = [
    "crop_lidar_points",
    "lidar_array_to_points",
    "lidar_points_to_array",
]
