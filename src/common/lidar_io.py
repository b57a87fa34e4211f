"""Loading of lidar scans, calibration and frame descriptions.

Lidar scans are KITTI velodyne ``.bin`` files: a flat float32 array of
x, y, z, reflectivity.  Calibration and frame descriptions are YAML
files read through `src.utils.config.load_config`.

A frame file looks like::

    frame_id: "0001"
    lidar: velodyne/0001.bin        # or inline lidar_points: [[x, y, z, r], ...]
    regions:
      - {box_id: 0, roi: [100, 80, 60, 40], class_id: 2, confidence: 0.9}
    keypoints:
      - [120.5, 95.0]               # or [x, y, size, response]
    kpt_matches:
      - [3, 0]                      # [prev_idx, curr_idx]
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from src.mapping.projection import combined_transform
from src.utils.config import load_config
from .data_structures import FrameObservations, Keypoint, KeypointMatch, LidarPoint, Region


def load_lidar_bin(path) -> np.ndarray:
    """Read a KITTI velodyne scan into an (N, 4) float array."""
    path = Path(path)
    raw = np.fromfile(path, dtype=np.float32)
    if raw.size % 4 != 0:
        raise ValueError(f"{path} does not contain a whole number of 4-float points")
    return raw.reshape(-1, 4).astype(float)


@dataclass
class Calibration:
    """Camera/lidar calibration matrices."""

    p_rect: np.ndarray
    r_rect: np.ndarray
    rt: np.ndarray

    @property
    def transform(self) -> np.ndarray:
        """Combined 3x4 lidar-to-pixel transform."""
        return combined_transform(self.p_rect, self.r_rect, self.rt)


def load_calibration(path) -> Calibration:
    """Read ``P_rect``, ``R_rect`` and ``RT`` from a YAML file."""
    cfg = load_config(path)
    missing = [key for key in ("P_rect", "R_rect", "RT") if key not in cfg]
    if missing:
        raise ValueError(f"calibration file {path} is missing {', '.join(missing)}")
    return Calibration(
        p_rect=np.asarray(cfg["P_rect"], dtype=float),
        r_rect=np.asarray(cfg["R_rect"], dtype=float),
        rt=np.asarray(cfg["RT"], dtype=float),
    )


def _parse_keypoint(values: List[float]) -> Keypoint:
    if len(values) < 2:
        raise ValueError(f"keypoint needs at least x and y, got {values}")
    x, y = float(values[0]), float(values[1])
    size = float(values[2]) if len(values) > 2 else 1.0
    response = float(values[3]) if len(values) > 3 else 0.0
    return Keypoint(x, y, size=size, response=response)


def _parse_region(entry: Dict[str, Any]) -> Region:
    roi = entry["roi"]
    if len(roi) != 4:
        raise ValueError(f"roi must be [x, y, width, height], got {roi}")
    return Region(
        box_id=int(entry["box_id"]),
        roi=tuple(float(v) for v in roi),
        class_id=int(entry.get("class_id", -1)),
        confidence=float(entry.get("confidence", 0.0)),
    )


def load_frame(path, base_dir: Optional[Path] = None) -> FrameObservations:
    """Read a frame description from YAML.

    Parameters
    ----------
    path : str or Path
        Frame YAML file.
    base_dir : Path, optional
        Directory relative lidar paths are resolved against.  Defaults
        to the directory of `path`.

    Returns
    -------
    FrameObservations
        Frame with keypoints, matches, regions and lidar points.
    """
    path = Path(path)
    cfg = load_config(path)
    if not cfg:
        raise FileNotFoundError(f"Frame file not found or empty: {path}")
    base_dir = Path(base_dir) if base_dir is not None else path.parent

    if "lidar" in cfg:
        lidar = load_lidar_bin(base_dir / cfg["lidar"])
    else:
        lidar = np.asarray(cfg.get("lidar_points", []), dtype=float).reshape(-1, 4)
    lidar_points = [LidarPoint(*map(float, row)) for row in lidar]

    ids = [int(entry["box_id"]) for entry in cfg.get("regions", [])]
    if len(ids) != len(set(ids)):
        raise ValueError(f"duplicate region ids in {path}")

    return FrameObservations(
        keypoints=[_parse_keypoint(kp) for kp in cfg.get("keypoints", [])],
        kpt_matches=[
            KeypointMatch(int(m[0]), int(m[1]), float(m[2]) if len(m) > 2 else 0.0)
            for m in cfg.get("kpt_matches", [])
        ],
        regions=[_parse_region(entry) for entry in cfg.get("regions", [])],
        lidar_points=lidar_points,
        frame_id=str(cfg.get("frame_id", path.stem)),
    )
