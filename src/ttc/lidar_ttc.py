"""Time-to-collision from lidar points.

A constant-velocity model is assumed between two frames::

    v   = (d_prev - d_curr) / dt
    TTC = d_curr / v

The distance of each frame is not the single closest return, which is
easily corrupted by stray reflections, but the forward coordinate at a
small fixed rank of the sorted point set.  The same rank is used for
both frames.
"""

import math
from typing import Sequence

import numpy as np

from src.common.data_structures import LidarPoint
from src.utils.logging import get_logger

logger = get_logger(__name__)


def ranked_distance(points: Sequence[LidarPoint], rank: int) -> float:
    """Forward distance at 0-based `rank` of the ascending sort."""
    xs = np.sort(np.array([p.x for p in points], dtype=float))
    return float(xs[rank])


def compute_ttc_lidar(
    points_prev: Sequence[LidarPoint],
    points_curr: Sequence[LidarPoint],
    frame_rate: float,
    rank: int = 5,
) -> float:
    """Estimate TTC from the lidar points of a matched region pair.

    Parameters
    ----------
    points_prev, points_curr : sequence of LidarPoint
        Points of the object in the previous and the current frame.
    frame_rate : float
        Sensor frame rate in Hz.
    rank : int, optional
        0-based index into the sorted forward distances.  Default 5.

    Returns
    -------
    float
        TTC in seconds.  NaN when either frame has ``rank`` points or
        fewer, when the closing velocity is zero, or when the object
        is receding (negative TTC).
    """
    if frame_rate <= 0:
        raise ValueError(f"frame_rate must be positive, got {frame_rate}")
    if rank < 0:
        raise ValueError(f"rank must be non-negative, got {rank}")

    if len(points_prev) <= rank or len(points_curr) <= rank:
        logger.debug(
            "Not enough lidar points for rank %d (prev=%d, curr=%d)",
            rank, len(points_prev), len(points_curr)
        )
        return math.nan

    d_prev = ranked_distance(points_prev, rank)
    d_curr = ranked_distance(points_curr, rank)
    dt = 1.0 / frame_rate
    velocity = (d_prev - d_curr) / dt
    if velocity == 0.0:
        logger.debug("Zero closing velocity at d=%.3f m", d_curr)
        return math.nan

    ttc = d_curr / velocity
    if ttc < 0:
        # receding object: mathematically valid, not a collision time
        logger.debug("Discarding negative lidar TTC %.3f s", ttc)
        return math.nan
    return ttc
