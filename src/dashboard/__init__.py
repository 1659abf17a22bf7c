"""Dashboard module for Ophtha-Timeline.

This module provides a FastAPI-based read API that serves derived patient
timelines (chart series, Gantt intervals, procedure summaries) to the
rendering layer.
"""

__version__ = "1.0.0"
