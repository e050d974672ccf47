"""Excel rendering of store statistics reports."""

from .stats_report_renderer import StatsReportRenderer

__all__ = ["StatsReportRenderer"]
