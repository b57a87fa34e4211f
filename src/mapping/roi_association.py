"""Association of lidar points and keypoint matches with image regions.

Lidar points are projected into the image and assigned to the single
region whose (slightly shrunk) rectangle encloses them.  Points falling
into several regions are ambiguous and are dropped, as are points
outside every region.  Keypoint matches are assigned to a region when
the current-frame keypoint lies inside the unshrunk rectangle.
"""

from typing import List, Sequence

import numpy as np

from src.common.data_structures import (
    Keypoint,
    KeypointMatch,
    LidarPoint,
    Region,
    resolve_keypoint,
)
from src.utils.logging import get_logger
from .projection import project_points

logger = get_logger(__name__)


def cluster_lidar_with_roi(
    regions: List[Region],
    lidar_points: Sequence[LidarPoint],
    shrink_factor: float,
    transform: np.ndarray,
) -> int:
    """Group lidar points by the region their projection falls into.

    Every region rectangle is shrunk toward its centre by
    `shrink_factor` before the containment test to discount returns
    near the edges, which often belong to the background or to a
    neighbouring object.

    Parameters
    ----------
    regions : list of Region
        Regions of one frame.  Matching points are appended to their
        `lidar_points` collection.
    lidar_points : sequence of LidarPoint
        Points of the same frame.
    shrink_factor : float
        Fraction in ``[0, 1)`` by which each rectangle side is reduced.
    transform : numpy.ndarray
        3x4 combined lidar-to-pixel transform.

    Returns
    -------
    int
        Number of points assigned to a region.
    """
    if not 0.0 <= shrink_factor < 1.0:
        raise ValueError(f"shrink_factor must be in [0, 1), got {shrink_factor}")
    if not regions or not lidar_points:
        return 0

    coords = np.array([(p.x, p.y, p.z) for p in lidar_points], dtype=float)
    uv = project_points(coords, transform)
    degenerate = np.isnan(uv[:, 0])
    if np.any(degenerate):
        logger.debug("Dropping %d points at or behind the image plane", int(degenerate.sum()))

    # (P, R) containment matrix against the shrunk rectangles
    boxes = np.array([region.shrunk_roi(shrink_factor) for region in regions])
    u = uv[:, 0:1]
    v = uv[:, 1:2]
    inside = (
        (u >= boxes[:, 0]) & (u < boxes[:, 0] + boxes[:, 2]) &
        (v >= boxes[:, 1]) & (v < boxes[:, 1] + boxes[:, 3])
    )
    n_enclosing = inside.sum(axis=1)

    unique = np.nonzero(n_enclosing == 1)[0]
    owner = inside.argmax(axis=1)
    for idx in unique:
        regions[owner[idx]].lidar_points.append(lidar_points[idx])

    n_ambiguous = int(np.sum(n_enclosing > 1))
    logger.debug(
        "Lidar association: %d assigned, %d ambiguous, %d outside of %d points",
        len(unique), n_ambiguous, int(np.sum(n_enclosing == 0)), len(lidar_points)
    )
    return int(len(unique))


def cluster_kpt_matches_with_roi(
    region: Region,
    kpts_prev: Sequence[Keypoint],
    kpts_curr: Sequence[Keypoint],
    kpt_matches: Sequence[KeypointMatch],
) -> int:
    """Associate a region with the keypoint matches it contains.

    Only the current-frame keypoint decides membership.  The previous
    keypoint index is still validated so that a broken match fails
    here rather than later during TTC estimation.

    Parameters
    ----------
    region : Region
        Current-frame region; its `kpt_matches` and `keypoints` grow.
    kpts_prev, kpts_curr : sequence of Keypoint
        Keypoints of the previous and current frame.
    kpt_matches : sequence of KeypointMatch
        All matches between the two frames.

    Returns
    -------
    int
        Number of matches added to the region.

    Raises
    ------
    IndexError
        If a match references a keypoint that does not exist.
    """
    added = 0
    for match in kpt_matches:
        resolve_keypoint(kpts_prev, match.prev_idx)
        kp_curr = resolve_keypoint(kpts_curr, match.curr_idx)
        if region.contains(kp_curr.x, kp_curr.y):
            region.kpt_matches.append(match)
            region.keypoints.append(kp_curr)
            added += 1
    return added
