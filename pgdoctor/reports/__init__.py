"""
Rendering of run results (text and JSON).
"""

from pgdoctor.reports.generator import ReportGenerator

__all__ = ["ReportGenerator"]
