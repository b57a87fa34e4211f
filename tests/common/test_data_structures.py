"""Unit tests for the shared data structures."""

import pytest

from src.common.data_structures import (
    FrameObservations,
    Keypoint,
    KeypointMatch,
    LidarPoint,
    Region,
    resolve_keypoint,
)


class TestRegion:
    """Test suite for Region."""

    def test_contains_half_open(self):
        """Test that the left/top edges are inside and right/bottom are not."""
        region = Region(0, (10, 20, 30, 40))
        assert region.contains(10, 20)
        assert region.contains(39.9, 59.9)
        assert not region.contains(40, 30)
        assert not region.contains(20, 60)
        assert not region.contains(9.9, 30)

    def test_shrunk_roi(self):
        """Test symmetric shrinking toward the centre."""
        region = Region(0, (0, 0, 100, 50))
        assert region.shrunk_roi(0.1) == pytest.approx((5.0, 2.5, 90.0, 45.0))
        assert region.shrunk_roi(0.0) == (0, 0, 100, 50)

    def test_shrunk_roi_keeps_centre(self):
        x, y, w, h = Region(0, (10, 20, 60, 80)).shrunk_roi(0.5)
        assert x + w / 2 == pytest.approx(40.0)
        assert y + h / 2 == pytest.approx(60.0)

    def test_collections_not_shared(self):
        """Test that each region owns its own collections."""
        a = Region(0, (0, 0, 1, 1))
        b = Region(1, (0, 0, 1, 1))
        a.lidar_points.append(LidarPoint(1.0, 0.0, 0.0))
        assert b.lidar_points == []

    def test_clear_associations(self):
        region = Region(0, (0, 0, 1, 1))
        region.lidar_points.append(LidarPoint(1.0, 0.0, 0.0))
        region.keypoints.append(Keypoint(0.5, 0.5))
        region.kpt_matches.append(KeypointMatch(0, 0))
        region.clear_associations()
        assert region.lidar_points == [] and region.keypoints == [] and region.kpt_matches == []


class TestFrameObservations:
    """Test suite for FrameObservations."""

    def test_region_lookup(self):
        frame = FrameObservations(regions=[Region(3, (0, 0, 1, 1)), Region(7, (0, 0, 1, 1))])
        assert frame.region_by_id(7).box_id == 7
        assert frame.region_ids() == [3, 7]
        with pytest.raises(KeyError):
            frame.region_by_id(4)


class TestResolveKeypoint:
    """Test suite for resolve_keypoint."""

    def test_valid_index(self):
        kpts = [Keypoint(1.0, 2.0), Keypoint(3.0, 4.0)]
        kp = resolve_keypoint(kpts, 1)
        assert (kp.x, kp.y) == (3.0, 4.0)

    def test_out_of_range(self):
        kpts = [Keypoint(1.0, 2.0)]
        with pytest.raises(IndexError):
            resolve_keypoint(kpts, 1)
        with pytest.raises(IndexError):
            resolve_keypoint(kpts, -1)
