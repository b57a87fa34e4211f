"""Shared data structures and input loading."""

from .data_structures import (
    DegenerateGeometryError,
    FrameObservations,
    Keypoint,
    KeypointMatch,
    LidarPoint,
    Region,
    RegionMatchResult,
)

__all__ = [
    "DegenerateGeometryError",
    "FrameObservations",
    "Keypoint",
    "KeypointMatch",
    "LidarPoint",
    "Region",
    "RegionMatchResult",
]
