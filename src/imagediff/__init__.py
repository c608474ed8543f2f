"""imagediff - Compare container images, optionally ignoring non-semantic noise."""

__version__ = "0.1.0"

from .exceptions import (
    AcquisitionError,
    ComparisonError,
    ConfigurationError,
    ImageDiffError,
    PathExpansionError,
    UnavailableError,
)
from .options import ComparisonConfig, build_options
from .pipeline import Outcome, run_diff

__all__ = [
    "ComparisonConfig",
    "Outcome",
    "build_options",
    "run_diff",
    "ImageDiffError",
    "ConfigurationError",
    "PathExpansionError",
    "AcquisitionError",
    "ComparisonError",
    "UnavailableError",
]
