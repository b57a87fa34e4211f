"""Core data structures shared across the fusion pipeline.

Lidar points, image keypoints, keypoint correspondences and detected
regions (2D bounding boxes) are modelled as small dataclasses.  A
`Region` owns the lidar points and keypoint matches associated with it
during one estimation cycle; a fresh set of regions exists for every
frame, so nothing is shared between the previous and current frame.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple


class DegenerateGeometryError(ValueError):
    """Raised when a zero-valued quantity would be used as a divisor."""


@dataclass(frozen=True)
class LidarPoint:
    """Single lidar return in vehicle coordinates."""

    x: float
    """Forward distance in metres."""

    y: float
    """Lateral offset in metres (positive to the left)."""

    z: float
    """Height in metres."""

    r: float = 0.0
    """Reflectivity of the return."""


@dataclass(frozen=True)
class Keypoint:
    """Image keypoint with detector metadata."""

    x: float
    y: float
    size: float = 1.0
    angle: float = -1.0
    response: float = 0.0
    octave: int = 0


@dataclass(frozen=True)
class KeypointMatch:
    """Correspondence between a previous and a current frame keypoint."""

    prev_idx: int
    """Index into the previous frame keypoint list."""

    curr_idx: int
    """Index into the current frame keypoint list."""

    distance: float = 0.0
    """Descriptor distance reported by the matcher."""


def resolve_keypoint(keypoints: Sequence[Keypoint], index: int) -> Keypoint:
    """Look up a keypoint by index, rejecting out-of-range indices.

    Negative indices are rejected as well; a match referencing one is a
    bug in the upstream matcher.

    Raises
    ------
    IndexError
        If `index` is outside ``[0, len(keypoints))``.
    """
    if index < 0 or index >= len(keypoints):
        raise IndexError(
            f"keypoint index {index} out of range for {len(keypoints)} keypoints"
        )
    return keypoints[index]


@dataclass
class Region:
    """Detected object region in one camera frame.

    The rectangle follows the half-open pixel convention: a point
    ``(u, v)`` is inside when ``x <= u < x + width`` and
    ``y <= v < y + height``.
    """

    box_id: int
    """Identifier, unique within its frame only."""

    roi: Tuple[float, float, float, float]
    """Rectangle as (x, y, width, height) in pixels."""

    class_id: int = -1
    confidence: float = 0.0

    lidar_points: List[LidarPoint] = field(default_factory=list)
    keypoints: List[Keypoint] = field(default_factory=list)
    kpt_matches: List[KeypointMatch] = field(default_factory=list)

    def contains(self, u: float, v: float) -> bool:
        """Check whether pixel ``(u, v)`` lies inside the unshrunk rectangle."""
        x, y, w, h = self.roi
        return x <= u < x + w and y <= v < y + h

    def shrunk_roi(self, shrink_factor: float) -> Tuple[float, float, float, float]:
        """Return the rectangle shrunk symmetrically toward its centre.

        Each dimension is reduced by the fraction `shrink_factor` and the
        origin is moved inward by half of that reduction.
        """
        x, y, w, h = self.roi
        return (
            x + shrink_factor * w / 2.0,
            y + shrink_factor * h / 2.0,
            w * (1.0 - shrink_factor),
            h * (1.0 - shrink_factor),
        )

    def clear_associations(self) -> None:
        """Drop all associated points and keypoints."""
        self.lidar_points.clear()
        self.keypoints.clear()
        self.kpt_matches.clear()


@dataclass
class FrameObservations:
    """Everything observed at one time step.

    `kpt_matches` links the keypoints of this frame to those of the
    preceding frame (``prev_idx`` refers to the previous frame,
    ``curr_idx`` to this one).  It is empty for the first frame of a
    sequence.
    """

    keypoints: List[Keypoint] = field(default_factory=list)
    kpt_matches: List[KeypointMatch] = field(default_factory=list)
    regions: List[Region] = field(default_factory=list)
    lidar_points: List[LidarPoint] = field(default_factory=list)
    frame_id: Optional[str] = None

    def region_by_id(self, box_id: int) -> Region:
        for region in self.regions:
            if region.box_id == box_id:
                return region
        raise KeyError(f"no region with id {box_id} in frame {self.frame_id!r}")

    def region_ids(self) -> List[int]:
        return [region.box_id for region in self.regions]

    def clear_associations(self) -> None:
        for region in self.regions:
            region.clear_associations()


@dataclass
class RegionMatchResult:
    """Outcome of matching previous-frame regions to current-frame regions."""

    matches: Dict[int, int]
    """Best current-frame id for every matched previous-frame id."""

    votes: Dict[Tuple[int, int], int]
    """Vote tally keyed by (previous id, current id)."""

    unmatched: List[int] = field(default_factory=list)
    """Previous-frame ids that received no votes at all."""

    conflicts: Dict[int, List[int]] = field(default_factory=dict)
    """Current-frame ids claimed by more than one previous-frame id."""

    @property
    def is_injective(self) -> bool:
        return not self.conflicts
