"""Unit tests for lidar and keypoint association with regions."""

import numpy as np
import pytest

from src.common.data_structures import Keypoint, KeypointMatch, LidarPoint, Region
from src.mapping.projection import combined_transform
from src.mapping.roi_association import cluster_kpt_matches_with_roi, cluster_lidar_with_roi

# u = x, v = y, depth = 1: lidar x/y are pixel coordinates directly
PIXEL_TRANSFORM = np.array([
    [1.0, 0.0, 0.0, 0.0],
    [0.0, 1.0, 0.0, 0.0],
    [0.0, 0.0, 0.0, 1.0],
])


class TestClusterLidarWithRoi:
    """Test suite for cluster_lidar_with_roi."""

    def test_point_inside_single_region(self):
        """Test that a point inside one region is assigned to it."""
        regions = [Region(0, (0, 0, 100, 100)), Region(1, (200, 0, 100, 100))]
        points = [LidarPoint(50.0, 50.0, 0.0), LidarPoint(250.0, 50.0, 0.0)]

        assigned = cluster_lidar_with_roi(regions, points, 0.1, PIXEL_TRANSFORM)

        assert assigned == 2
        assert regions[0].lidar_points == [points[0]]
        assert regions[1].lidar_points == [points[1]]

    def test_point_outside_all_regions(self):
        """Test that points outside every region are dropped."""
        regions = [Region(0, (0, 0, 100, 100))]
        points = [LidarPoint(150.0, 150.0, 0.0)]

        assert cluster_lidar_with_roi(regions, points, 0.0, PIXEL_TRANSFORM) == 0
        assert regions[0].lidar_points == []

    def test_point_in_overlap_is_dropped(self):
        """Test that a point centred in two overlapping boxes goes to neither."""
        regions = [Region(0, (0, 0, 100, 100)), Region(1, (50, 0, 100, 100))]
        # shrunk boxes with s=0.2: [10, 90) and [60, 140) -> overlap centre 75
        points = [LidarPoint(75.0, 50.0, 0.0)]

        assert cluster_lidar_with_roi(regions, points, 0.2, PIXEL_TRANSFORM) == 0
        assert regions[0].lidar_points == []
        assert regions[1].lidar_points == []

    def test_shrink_excludes_border_points(self):
        """Test that points near the border are discarded after shrinking."""
        regions = [Region(0, (0, 0, 100, 100))]
        points = [LidarPoint(3.0, 50.0, 0.0), LidarPoint(50.0, 50.0, 0.0)]

        cluster_lidar_with_roi(regions, points, 0.1, PIXEL_TRANSFORM)
        assert regions[0].lidar_points == [points[1]]

        regions[0].clear_associations()
        cluster_lidar_with_roi(regions, points, 0.0, PIXEL_TRANSFORM)
        assert regions[0].lidar_points == points

    def test_shrink_removes_overlap(self):
        """Test that shrinking can resolve a point only covered by one box's border."""
        regions = [Region(0, (0, 0, 100, 100)), Region(1, (95, 0, 100, 100))]
        points = [LidarPoint(97.0, 50.0, 0.0)]

        assert cluster_lidar_with_roi(regions, points, 0.0, PIXEL_TRANSFORM) == 0
        assert cluster_lidar_with_roi(regions, points, 0.1, PIXEL_TRANSFORM) == 0
        # with s=0.1 the first box ends at 95, the second starts at 100
        regions[1].roi = (90, 0, 100, 100)
        assert cluster_lidar_with_roi(regions, points, 0.1, PIXEL_TRANSFORM) == 1
        assert regions[1].lidar_points == points

    def test_assignment_is_partition(self):
        """Test that no point ends up in two regions and all come from the input."""
        rng = np.random.default_rng(0)
        regions = [
            Region(0, (0, 0, 120, 120)),
            Region(1, (80, 60, 120, 120)),
            Region(2, (150, 0, 60, 200)),
        ]
        points = [LidarPoint(float(x), float(y), 0.0) for x, y in rng.uniform(0, 220, (500, 2))]

        for shrink in (0.0, 0.1, 0.5, 0.9):
            for region in regions:
                region.clear_associations()
            cluster_lidar_with_roi(regions, points, shrink, PIXEL_TRANSFORM)

            seen = []
            for region in regions:
                seen.extend(id(p) for p in region.lidar_points)
            assert len(seen) == len(set(seen))
            assert set(seen) <= {id(p) for p in points}

    def test_zero_depth_points_dropped(self):
        """Test that points with zero projected depth are skipped."""
        transform = np.array([
            [1.0, 0.0, 0.0, 0.0],
            [0.0, 1.0, 0.0, 0.0],
            [0.0, 0.0, 1.0, 0.0],
        ])
        regions = [Region(0, (-1000, -1000, 2000, 2000))]
        points = [LidarPoint(1.0, 1.0, 0.0), LidarPoint(1.0, 1.0, 1.0)]

        assert cluster_lidar_with_roi(regions, points, 0.0, transform) == 1
        assert regions[0].lidar_points == [points[1]]

    def test_points_behind_camera_dropped(self):
        """Test that returns behind the camera are not mirrored into a front region."""
        p_rect = np.array([[700.0, 0.0, 600.0, 0.0], [0.0, 700.0, 200.0, 0.0], [0.0, 0.0, 1.0, 0.0]])
        rt = np.array([[0.0, -1.0, 0.0, 0.0], [0.0, 0.0, -1.0, 0.0], [1.0, 0.0, 0.0, 0.0]])
        transform = combined_transform(p_rect, np.eye(3), rt)
        regions = [Region(0, (500, 230, 200, 120))]
        ahead = [LidarPoint(10.0 + 0.1 * i, 0.3 if i % 2 else -0.3, -1.0) for i in range(10)]
        # point-mirrored through the camera centre these land inside the region
        behind = [LidarPoint(-10.3 - 0.1 * i, 0.3 if i % 2 else -0.3, 1.0) for i in range(6)]

        assigned = cluster_lidar_with_roi(regions, ahead + behind, 0.1, transform)

        assert assigned == 10
        assert all(p.x > 0.0 for p in regions[0].lidar_points)

    def test_invalid_shrink_factor(self):
        """Test shrink factor validation."""
        regions = [Region(0, (0, 0, 100, 100))]
        points = [LidarPoint(50.0, 50.0, 0.0)]
        with pytest.raises(ValueError):
            cluster_lidar_with_roi(regions, points, 1.0, PIXEL_TRANSFORM)
        with pytest.raises(ValueError):
            cluster_lidar_with_roi(regions, points, -0.1, PIXEL_TRANSFORM)

    def test_empty_inputs(self):
        """Test association with no points or no regions."""
        assert cluster_lidar_with_roi([], [LidarPoint(1.0, 1.0, 0.0)], 0.1, PIXEL_TRANSFORM) == 0
        assert cluster_lidar_with_roi([Region(0, (0, 0, 10, 10))], [], 0.1, PIXEL_TRANSFORM) == 0


class TestClusterKptMatchesWithRoi:
    """Test suite for cluster_kpt_matches_with_roi."""

    def setup_keypoints(self):
        kpts_prev = [Keypoint(10.0, 10.0), Keypoint(500.0, 500.0), Keypoint(20.0, 20.0)]
        kpts_curr = [Keypoint(15.0, 15.0), Keypoint(30.0, 30.0), Keypoint(300.0, 300.0)]
        return kpts_prev, kpts_curr

    def test_membership_uses_current_keypoint(self):
        """Test that only the current keypoint decides membership."""
        kpts_prev, kpts_curr = self.setup_keypoints()
        region = Region(0, (0, 0, 100, 100))
        # previous keypoint 1 is far outside, current keypoint 1 is inside
        matches = [KeypointMatch(1, 1), KeypointMatch(2, 2)]

        added = cluster_kpt_matches_with_roi(region, kpts_prev, kpts_curr, matches)

        assert added == 1
        assert region.kpt_matches == [matches[0]]
        assert region.keypoints == [kpts_curr[1]]

    def test_first_match_is_evaluated(self):
        """Test that the first match in the list is not skipped."""
        kpts_prev, kpts_curr = self.setup_keypoints()
        region = Region(0, (0, 0, 100, 100))
        matches = [KeypointMatch(0, 0)]

        assert cluster_kpt_matches_with_roi(region, kpts_prev, kpts_curr, matches) == 1

    def test_output_bounded_and_inside(self):
        """Test that every returned match lies inside the rectangle."""
        rng = np.random.default_rng(1)
        kpts_prev = [Keypoint(float(x), float(y)) for x, y in rng.uniform(0, 400, (60, 2))]
        kpts_curr = [Keypoint(float(x), float(y)) for x, y in rng.uniform(0, 400, (60, 2))]
        matches = [KeypointMatch(i, (i * 7) % 60) for i in range(60)]
        region = Region(3, (100, 50, 150, 200))

        cluster_kpt_matches_with_roi(region, kpts_prev, kpts_curr, matches)

        assert len(region.kpt_matches) <= len(matches)
        assert len(region.keypoints) == len(region.kpt_matches)
        for match in region.kpt_matches:
            kp = kpts_curr[match.curr_idx]
            assert region.contains(kp.x, kp.y)

    def test_no_shrink_applied(self):
        """Test that a keypoint near the border is still accepted."""
        kpts_prev = [Keypoint(0.0, 0.0)]
        kpts_curr = [Keypoint(1.0, 50.0)]
        region = Region(0, (0, 0, 100, 100))

        assert cluster_kpt_matches_with_roi(region, kpts_prev, kpts_curr, [KeypointMatch(0, 0)]) == 1

    def test_invalid_index_raises(self):
        """Test that out-of-range indices fail immediately."""
        kpts_prev, kpts_curr = self.setup_keypoints()
        region = Region(0, (0, 0, 100, 100))
        with pytest.raises(IndexError):
            cluster_kpt_matches_with_roi(region, kpts_prev, kpts_curr, [KeypointMatch(0, 5)])
        with pytest.raises(IndexError):
            cluster_kpt_matches_with_roi(region, kpts_prev, kpts_curr, [KeypointMatch(-1, 0)])
