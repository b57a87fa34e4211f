"""Demo script for the TTC pipeline with synthetic data.

This script builds two synthetic frames of a vehicle approaching at
constant speed, with noisy lidar returns, a couple of stray
reflections, jittered keypoints and one mismatched keypoint, runs the
full pipeline and prints both TTC estimates next to the true value.

Usage:
    python examples/demo_ttc_pipeline.py
"""

import sys
from pathlib import Path

import numpy as np

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.common.data_structures import FrameObservations, Keypoint, KeypointMatch, Region
from src.mapping.projection import combined_transform
from src.preprocessing.lidar_filter import lidar_array_to_points
from src.ttc.pipeline import TTCPipeline
from src.utils.config import FusionConfig

FOCAL = 700.0
CX, CY = 600.0, 200.0


def make_transform() -> np.ndarray:
    """Pinhole camera mounted at the lidar origin, looking forward."""
    p_rect = np.array([[FOCAL, 0.0, CX, 0.0], [0.0, FOCAL, CY, 0.0], [0.0, 0.0, 1.0, 0.0]])
    rt = np.array([[0.0, -1.0, 0.0, 0.0], [0.0, 0.0, -1.0, 0.0], [1.0, 0.0, 0.0, 0.0]])
    return combined_transform(p_rect, np.eye(3), rt)


def vehicle_region(distance: float, box_id: int) -> Region:
    """Detector box around a 1.8 m wide, 1.4 m high vehicle rear."""
    half_w = FOCAL * 0.9 / distance
    top = CY + FOCAL * (1.7 - 1.4) / distance
    height = FOCAL * 1.4 / distance
    return Region(box_id, (CX - half_w, top, 2 * half_w, height), class_id=2, confidence=0.9)


def create_lidar_scan(distance: float, rng: np.random.Generator) -> np.ndarray:
    """Returns from the vehicle rear plus a few stray reflections."""
    n = 300
    x = distance + np.abs(rng.normal(0.0, 0.03, n))
    y = rng.uniform(-0.8, 0.8, n)
    z = rng.uniform(-1.4, -1.0, n)
    r = rng.uniform(0.2, 0.8, n)
    rear = np.column_stack([x, y, z, r])
    strays = np.array([
        [distance - 1.5, 0.1, -1.2, 0.3],
        [distance - 2.0, -0.2, -1.1, 0.3],
    ])
    return np.vstack([rear, strays])


def create_keypoints(distance: float, rng: np.random.Generator, n: int = 40):
    """Keypoints on the vehicle rear, scaled with 1 / distance."""
    base = np.random.default_rng(7).uniform([-0.8, -1.35], [0.8, -1.05], (n, 2))
    u = CX + FOCAL * (-base[:, 0]) / distance + rng.normal(0.0, 0.3, n)
    v = CY + FOCAL * (-base[:, 1]) / distance + rng.normal(0.0, 0.3, n)
    return [Keypoint(float(a), float(b)) for a, b in zip(u, v)]


def main() -> int:
    rng = np.random.default_rng(42)
    frame_rate = 10.0
    d_prev, speed = 8.0, 4.0
    d_curr = d_prev - speed / frame_rate

    kpts_prev = create_keypoints(d_prev, rng)
    kpts_curr = create_keypoints(d_curr, rng)
    matches = [KeypointMatch(i, i) for i in range(len(kpts_curr))]
    # one wrong correspondence
    matches[0] = KeypointMatch(0, len(kpts_curr) - 1)

    prev_frame = FrameObservations(
        keypoints=kpts_prev,
        regions=[vehicle_region(d_prev, 3)],
        lidar_points=lidar_array_to_points(create_lidar_scan(d_prev, rng)),
        frame_id="prev",
    )
    curr_frame = FrameObservations(
        keypoints=kpts_curr,
        kpt_matches=matches,
        regions=[vehicle_region(d_curr, 0)],
        lidar_points=lidar_array_to_points(create_lidar_scan(d_curr, rng)),
        frame_id="curr",
    )

    config = FusionConfig(frame_rate=frame_rate, min_keypoint_distance=20.0)
    pipeline = TTCPipeline(make_transform(), config)
    estimates = pipeline.run(prev_frame, curr_frame)

    print(f"True TTC:    {d_curr / speed:.2f} s")
    for est in estimates:
        print(f"Regions {est.prev_box_id} -> {est.curr_box_id}")
        print(f"  Lidar TTC:  {est.ttc_lidar:.2f} s ({est.n_lidar_curr} points)")
        print(f"  Camera TTC: {est.ttc_camera:.2f} s ({est.n_kpt_matches} matches)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
