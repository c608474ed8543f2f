"""Image comparison engine."""

from .engine import diff
from .report import ReportNode

__all__ = ["diff", "ReportNode"]
