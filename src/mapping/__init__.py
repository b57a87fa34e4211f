"""Mapping between lidar points, keypoints and image regions.

This package projects lidar points into the camera image, associates
points and keypoint matches with detected regions, and matches regions
across two consecutive frames.
"""

from .projection import combined_transform, project_point, project_points
from .roi_association import cluster_lidar_with_roi, cluster_kpt_matches_with_roi
from .box_matching import match_bounding_boxes

__all__ = [
    "combined_transform",
    "project_point",
    "project_points",
    "cluster_lidar_with_roi",
    "cluster_kpt_matches_with_roi",
    "match_bounding_boxes",
]
