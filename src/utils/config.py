"""Configuration loader.

Reads configuration files in YAML format.  `load_config` returns the
raw dictionary; `FusionConfig` holds the tunable parameters of the
time-to-collision pipeline and can be built from such a file.
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict

import yaml


def load_config(path: str) -> Dict[str, Any]:
    """Load a YAML configuration file into a dictionary.

    Parameters
    ----------
    path : str
        Path to the YAML configuration file.

    Returns
    -------
    dict
        Parsed configuration dictionary.  Returns an empty dict if the
        file does not exist or is empty.
    """
    cfg_path = Path(path)
    if not cfg_path.is_file():
        return {}
    with open(cfg_path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{cfg_path} must contain a mapping at the top level")
    return data


@dataclass
class FusionConfig:
    """Parameters of the lidar/camera TTC pipeline."""

    frame_rate: float = 10.0
    """Sensor frame rate in Hz; the frame interval is its inverse."""

    shrink_factor: float = 0.10
    """Fraction by which region rectangles shrink for lidar association."""

    lidar_rank: int = 5
    """0-based rank of the sorted forward distances used for lidar TTC."""

    min_keypoint_distance: float = 100.0
    """Minimum keypoint spacing in pixels for camera TTC."""

    crop_lidar: bool = True
    """Whether to crop lidar points to the ego lane before association."""

    crop_min_x: float = 2.0
    crop_max_x: float = 20.0
    crop_max_y: float = 2.0
    crop_min_z: float = -1.5
    crop_max_z: float = -0.9
    crop_min_r: float = 0.1

    log_level: str = "INFO"

    def __post_init__(self):
        if self.frame_rate <= 0:
            raise ValueError(f"frame_rate must be positive, got {self.frame_rate}")
        if not 0.0 <= self.shrink_factor < 1.0:
            raise ValueError(f"shrink_factor must be in [0, 1), got {self.shrink_factor}")
        if self.lidar_rank < 0:
            raise ValueError(f"lidar_rank must be non-negative, got {self.lidar_rank}")
        if self.min_keypoint_distance < 0:
            raise ValueError("min_keypoint_distance must be non-negative")

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "FusionConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**values)

    @classmethod
    def from_yaml(cls, path: str) -> "FusionConfig":
        """Build a config from a YAML file, falling back to defaults for missing keys.

        Raises
        ------
        FileNotFoundError
            If `path` does not point to an existing file.
        """
        if not Path(path).is_file():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        return cls.from_dict(load_config(path))
