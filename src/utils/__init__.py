"""Utility functions for the fusion pipeline."""

from .logging import get_logger, set_log_level
from .config import FusionConfig, load_config

__all__ = ["get_logger", "set_log_level", "FusionConfig", "load_config"]
