"""Time-to-collision from keypoint scale change.

When an object approaches at constant speed, the spacing between any
two of its keypoints grows by the same factor from one frame to the
next.  The ratio of current to previous spacing is computed for every
pair of matches in the region; the median of those ratios is robust to
mismatched keypoints, which produce extreme values.  TTC then follows
as ``-dt / (1 - ratio)``.
"""

import math
from itertools import combinations
from typing import List, Sequence

import numpy as np

from src.common.data_structures import Keypoint, KeypointMatch, resolve_keypoint
from src.utils.logging import get_logger

logger = get_logger(__name__)

_EPS = np.finfo(float).eps


def median_distance_ratio(ratios: Sequence[float]) -> float:
    """Median of a non-empty list of ratios.

    Odd length takes the middle element of the sorted list, even
    length the mean of the two central elements.
    """
    if len(ratios) == 0:
        raise ValueError("median of an empty sequence is undefined")
    ordered = sorted(ratios)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 1:
        return float(ordered[mid])
    return (ordered[mid - 1] + ordered[mid]) / 2.0


def distance_ratios(
    kpts_prev: Sequence[Keypoint],
    kpts_curr: Sequence[Keypoint],
    kpt_matches: Sequence[KeypointMatch],
    min_dist: float = 100.0,
) -> List[float]:
    """Spacing ratios current/previous over all pairs of matches.

    Pairs closer than `min_dist` pixels in the current frame are
    skipped, as are pairs whose previous spacing is zero.
    """
    resolved = [
        (resolve_keypoint(kpts_prev, m.prev_idx), resolve_keypoint(kpts_curr, m.curr_idx))
        for m in kpt_matches
    ]
    ratios: List[float] = []
    for (prev_a, curr_a), (prev_b, curr_b) in combinations(resolved, 2):
        dist_curr = math.hypot(curr_a.x - curr_b.x, curr_a.y - curr_b.y)
        dist_prev = math.hypot(prev_a.x - prev_b.x, prev_a.y - prev_b.y)
        if dist_prev > _EPS and dist_curr >= min_dist:
            ratios.append(dist_curr / dist_prev)
    return ratios


def compute_ttc_camera(
    kpts_prev: Sequence[Keypoint],
    kpts_curr: Sequence[Keypoint],
    kpt_matches: Sequence[KeypointMatch],
    frame_rate: float,
    min_dist: float = 100.0,
) -> float:
    """Estimate TTC from the keypoint matches of one region.

    Parameters
    ----------
    kpts_prev, kpts_curr : sequence of Keypoint
        Keypoints of the previous and current frame.
    kpt_matches : sequence of KeypointMatch
        Matches belonging to the region.
    frame_rate : float
        Camera frame rate in Hz.
    min_dist : float, optional
        Minimum current-frame spacing in pixels for a pair to count.

    Returns
    -------
    float
        TTC in seconds, signed as given by ``-dt / (1 - ratio)``: a
        pattern that shrinks between frames (ratio below one) yields a
        negative value.  NaN when no pair survives filtering or the
        median ratio is exactly one.
    """
    if frame_rate <= 0:
        raise ValueError(f"frame_rate must be positive, got {frame_rate}")

    ratios = distance_ratios(kpts_prev, kpts_curr, kpt_matches, min_dist)
    if not ratios:
        logger.debug("No usable keypoint pairs among %d matches", len(kpt_matches))
        return math.nan

    median_ratio = median_distance_ratio(ratios)
    if median_ratio == 1.0:
        logger.debug("Median distance ratio is 1, no scale change")
        return math.nan

    dt = 1.0 / frame_rate
    return -dt / (1.0 - median_ratio)
