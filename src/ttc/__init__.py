"""Time-to-collision estimation from lidar and camera."""

from .lidar_ttc import compute_ttc_lidar
from .camera_ttc import compute_ttc_camera, median_distance_ratio
from .pipeline import TTCPipeline, TTCEstimate

__all__ = [
    "compute_ttc_lidar",
    "compute_ttc_camera",
    "median_distance_ratio",
    "TTCPipeline",
    "TTCEstimate",
]
