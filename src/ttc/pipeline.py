"""Time-to-collision pipeline for a pair of frames.

This module wires the individual steps together: lidar points and
keypoint matches are associated with the detected regions of each
frame, the regions are matched across frames, and for every matched
pair a lidar-based and a camera-based TTC are computed.  The two
estimates are reported side by side and never combined.

Usage:
    python -m src.ttc.pipeline --calib calib.yaml --prev 0000.yaml --curr 0001.yaml
"""

import argparse
import math
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from src.common.data_structures import FrameObservations, Region, RegionMatchResult
from src.common.lidar_io import load_calibration, load_frame
from src.mapping.box_matching import match_bounding_boxes
from src.mapping.roi_association import cluster_kpt_matches_with_roi, cluster_lidar_with_roi
from src.preprocessing.lidar_filter import (
    crop_lidar_points,
    lidar_array_to_points,
    lidar_points_to_array,
)
from src.utils.config import FusionConfig
from src.utils.logging import get_logger, set_log_level
from .camera_ttc import compute_ttc_camera
from .lidar_ttc import compute_ttc_lidar

logger = get_logger(__name__)


def summarize_region(region: Region) -> Dict[str, float]:
    """Key figures of a region's associated points.

    Returns the point count, the closest forward distance ``xmin``,
    the lateral extent ``yw`` of the point set and the number of
    keypoint matches.  Distances are NaN for a region without points.
    """
    n_pts = len(region.lidar_points)
    if n_pts:
        ys = [p.y for p in region.lidar_points]
        xmin = min(p.x for p in region.lidar_points)
        yw = max(ys) - min(ys)
    else:
        xmin = yw = math.nan
    return {
        "n_lidar_points": n_pts,
        "xmin": xmin,
        "yw": yw,
        "n_kpt_matches": len(region.kpt_matches),
    }


@dataclass
class TTCEstimate:
    """Both TTC estimates for one matched region pair."""

    prev_box_id: int
    curr_box_id: int
    ttc_lidar: float
    ttc_camera: float
    n_lidar_prev: int
    n_lidar_curr: int
    n_kpt_matches: int
    xmin_curr: float
    yw_curr: float

    @property
    def has_lidar_estimate(self) -> bool:
        return math.isfinite(self.ttc_lidar)

    @property
    def has_camera_estimate(self) -> bool:
        return math.isfinite(self.ttc_camera)

    def to_dict(self) -> Dict:
        return asdict(self)


class TTCPipeline:
    """Associate, match and estimate TTC for a previous/current frame pair."""

    def __init__(self, transform: np.ndarray, config: Optional[FusionConfig] = None):
        """Initialise the pipeline.

        Parameters
        ----------
        transform : numpy.ndarray
            3x4 combined lidar-to-pixel transform.
        config : FusionConfig, optional
            Pipeline parameters; defaults are used when omitted.
        """
        self.transform = np.asarray(transform, dtype=float)
        if self.transform.shape != (3, 4):
            raise ValueError(f"transform must be 3x4, got {self.transform.shape}")
        self.config = config or FusionConfig()
        set_log_level(self.config.log_level)
        self.match_result: Optional[RegionMatchResult] = None

    def step_1_associate_lidar(self, frame: FrameObservations) -> int:
        """Assign the frame's lidar points to its regions."""
        points = frame.lidar_points
        if self.config.crop_lidar and points:
            cfg = self.config
            cropped = crop_lidar_points(
                lidar_points_to_array(points),
                min_x=cfg.crop_min_x, max_x=cfg.crop_max_x, max_y=cfg.crop_max_y,
                min_z=cfg.crop_min_z, max_z=cfg.crop_max_z, min_r=cfg.crop_min_r,
            )
            logger.debug("Crop kept %d/%d lidar points", len(cropped), len(points))
            points = lidar_array_to_points(cropped)
        return cluster_lidar_with_roi(
            frame.regions, points, self.config.shrink_factor, self.transform
        )

    def step_2_associate_keypoints(
        self, prev_frame: FrameObservations, curr_frame: FrameObservations
    ) -> int:
        """Assign the keypoint matches to the regions of the current frame."""
        total = 0
        for region in curr_frame.regions:
            total += cluster_kpt_matches_with_roi(
                region, prev_frame.keypoints, curr_frame.keypoints, curr_frame.kpt_matches
            )
        return total

    def step_3_match_regions(
        self, prev_frame: FrameObservations, curr_frame: FrameObservations
    ) -> RegionMatchResult:
        """Find the current-frame region for each previous-frame region."""
        self.match_result = match_bounding_boxes(curr_frame.kpt_matches, prev_frame, curr_frame)
        return self.match_result

    def step_4_compute_ttc(
        self,
        prev_frame: FrameObservations,
        curr_frame: FrameObservations,
        match_result: RegionMatchResult,
    ) -> List[TTCEstimate]:
        """Compute both TTC estimates for every matched region pair."""
        cfg = self.config
        estimates: List[TTCEstimate] = []
        for prev_id, curr_id in sorted(match_result.matches.items()):
            prev_region = prev_frame.region_by_id(prev_id)
            curr_region = curr_frame.region_by_id(curr_id)

            ttc_lidar = compute_ttc_lidar(
                prev_region.lidar_points, curr_region.lidar_points,
                cfg.frame_rate, rank=cfg.lidar_rank
            )
            ttc_camera = compute_ttc_camera(
                prev_frame.keypoints, curr_frame.keypoints, curr_region.kpt_matches,
                cfg.frame_rate, min_dist=cfg.min_keypoint_distance
            )
            summary = summarize_region(curr_region)
            estimates.append(TTCEstimate(
                prev_box_id=prev_id,
                curr_box_id=curr_id,
                ttc_lidar=ttc_lidar,
                ttc_camera=ttc_camera,
                n_lidar_prev=len(prev_region.lidar_points),
                n_lidar_curr=summary["n_lidar_points"],
                n_kpt_matches=summary["n_kpt_matches"],
                xmin_curr=summary["xmin"],
                yw_curr=summary["yw"],
            ))
        return estimates

    def run(
        self, prev_frame: FrameObservations, curr_frame: FrameObservations
    ) -> List[TTCEstimate]:
        """Run a complete estimation cycle.

        Any associations left over from an earlier run are cleared
        first, so running twice on the same frames gives the same
        result.

        Parameters
        ----------
        prev_frame, curr_frame : FrameObservations
            The two frames; `curr_frame.kpt_matches` must link them.

        Returns
        -------
        list of TTCEstimate
            One entry per matched region pair, ordered by previous id.
        """
        prev_frame.clear_associations()
        curr_frame.clear_associations()

        n_prev = self.step_1_associate_lidar(prev_frame)
        n_curr = self.step_1_associate_lidar(curr_frame)
        logger.debug("Associated %d/%d lidar points (prev/curr)", n_prev, n_curr)

        n_kpts = self.step_2_associate_keypoints(prev_frame, curr_frame)
        logger.debug("Associated %d keypoint matches", n_kpts)

        match_result = self.step_3_match_regions(prev_frame, curr_frame)
        estimates = self.step_4_compute_ttc(prev_frame, curr_frame, match_result)

        for est in estimates:
            logger.info(
                "Regions %d -> %d: TTC lidar %.2f s, TTC camera %.2f s",
                est.prev_box_id, est.curr_box_id, est.ttc_lidar, est.ttc_camera
            )
            if est.has_camera_estimate and est.ttc_camera < 0:
                logger.info("Region %d: negative camera TTC, keypoints are contracting",
                            est.curr_box_id)
        return estimates


def export_estimates(estimates: List[TTCEstimate], path: Path) -> pd.DataFrame:
    """Write estimates to Parquet, or to CSV when `path` ends in ``.csv``.

    Returns
    -------
    pandas.DataFrame
        The table that was written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    columns = list(TTCEstimate.__dataclass_fields__)
    df = pd.DataFrame([est.to_dict() for est in estimates], columns=columns)
    if path.suffix == ".csv":
        df.to_csv(path, index=False)
    else:
        df.to_parquet(path, index=False)
    return df


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(
        description="Estimate lidar and camera time-to-collision for a frame pair"
    )
    parser.add_argument("--calib", type=str, required=True, help="Calibration YAML file")
    parser.add_argument("--prev", type=str, required=True, help="Previous frame YAML file")
    parser.add_argument("--curr", type=str, required=True, help="Current frame YAML file")
    parser.add_argument("--config", type=str, default=None, help="Pipeline config YAML file")
    parser.add_argument("--output", type=str, default=None,
                        help="Write estimates to this .parquet or .csv file")
    args = parser.parse_args(argv)

    config = FusionConfig.from_yaml(args.config) if args.config else FusionConfig()
    set_log_level(config.log_level)

    calibration = load_calibration(args.calib)
    prev_frame = load_frame(args.prev)
    curr_frame = load_frame(args.curr)

    pipeline = TTCPipeline(calibration.transform, config)
    estimates = pipeline.run(prev_frame, curr_frame)

    if pipeline.match_result is not None and pipeline.match_result.unmatched:
        logger.info("Unmatched previous regions: %s", pipeline.match_result.unmatched)
    if args.output:
        export_estimates(estimates, Path(args.output))
        logger.info("Estimates written to %s", args.output)
    return 0 if estimates else 1


if __name__ == "__main__":
    sys.exit(main())
