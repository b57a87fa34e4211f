"""Cross-frame matching of detected regions.

Detector ids are only unique within a frame, so the region that
represents a given object has to be re-identified in the next frame.
Keypoint matches act as votes: a match whose previous keypoint lies in
region A of the previous frame and whose current keypoint lies in
region X of the current frame votes for the pair (A, X).  Every
previous region is paired with the current region that collected the
most votes; ties go to the lowest current id.
"""

from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from src.common.data_structures import (
    FrameObservations,
    Keypoint,
    KeypointMatch,
    Region,
    RegionMatchResult,
    resolve_keypoint,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)


def _enclosing_region_id(regions: Sequence[Region], kp: Keypoint) -> Optional[int]:
    """Id of the only region containing `kp`, or None if zero or several do."""
    enclosing = [region.box_id for region in regions if region.contains(kp.x, kp.y)]
    if len(enclosing) == 1:
        return enclosing[0]
    return None


def count_box_votes(
    kpt_matches: Sequence[KeypointMatch],
    prev_frame: FrameObservations,
    curr_frame: FrameObservations,
) -> Counter:
    """Tally keypoint-match votes per (previous id, current id) pair.

    Matches whose keypoints are enclosed by no region, or by more than
    one region in either frame, do not vote.
    """
    votes: Counter = Counter()
    for match in kpt_matches:
        kp_prev = resolve_keypoint(prev_frame.keypoints, match.prev_idx)
        kp_curr = resolve_keypoint(curr_frame.keypoints, match.curr_idx)
        prev_id = _enclosing_region_id(prev_frame.regions, kp_prev)
        if prev_id is None:
            continue
        curr_id = _enclosing_region_id(curr_frame.regions, kp_curr)
        if curr_id is None:
            continue
        votes[(prev_id, curr_id)] += 1
    return votes


def select_best_matches(
    votes: Dict[Tuple[int, int], int],
    prev_ids: Sequence[int],
) -> Tuple[Dict[int, int], List[int]]:
    """Pick the best current id for every previous id.

    Parameters
    ----------
    votes : dict
        Vote tally keyed by (previous id, current id).
    prev_ids : sequence of int
        All previous-frame region ids, in frame order.

    Returns
    -------
    (dict, list)
        The mapping previous id -> current id, and the previous ids
        without a single vote.
    """
    best: Dict[int, Tuple[int, int]] = {}
    for (prev_id, curr_id), count in votes.items():
        if count <= 0:
            continue
        # higher count wins, then lower current id
        key = (-count, curr_id)
        if prev_id not in best or key < best[prev_id]:
            best[prev_id] = key

    matches = {prev_id: best[prev_id][1] for prev_id in prev_ids if prev_id in best}
    unmatched = [prev_id for prev_id in prev_ids if prev_id not in best]
    return matches, unmatched


def match_bounding_boxes(
    kpt_matches: Sequence[KeypointMatch],
    prev_frame: FrameObservations,
    curr_frame: FrameObservations,
) -> RegionMatchResult:
    """Match previous-frame regions to current-frame regions.

    Parameters
    ----------
    kpt_matches : sequence of KeypointMatch
        Keypoint matches between `prev_frame` and `curr_frame`.
    prev_frame, curr_frame : FrameObservations
        The two frames with their keypoints and regions.

    Returns
    -------
    RegionMatchResult
        Best matches, the raw vote tally, unmatched previous ids and
        current ids claimed by several previous regions.
    """
    votes = count_box_votes(kpt_matches, prev_frame, curr_frame)
    matches, unmatched = select_best_matches(votes, prev_frame.region_ids())

    claimed: Dict[int, List[int]] = {}
    for prev_id, curr_id in matches.items():
        claimed.setdefault(curr_id, []).append(prev_id)
    conflicts = {curr_id: prev_ids for curr_id, prev_ids in claimed.items() if len(prev_ids) > 1}

    for prev_id in unmatched:
        logger.info("Region %d of the previous frame has no match", prev_id)
    for curr_id, prev_ids in conflicts.items():
        logger.warning(
            "Region %d of the current frame is matched by several previous regions %s",
            curr_id, prev_ids
        )

    return RegionMatchResult(
        matches=matches,
        votes=dict(votes),
        unmatched=unmatched,
        conflicts=conflicts,
    )
