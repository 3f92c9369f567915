"""Terminal reporting for check results and produced artifacts."""

from crateforge.monitor.renderer import CheckReportRenderer

__all__ = ["CheckReportRenderer"]
