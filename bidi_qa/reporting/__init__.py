"""Run summary reporting."""

from .run_summary import RunSummaryLogger, generate_run_id

__all__ = ["RunSummaryLogger", "generate_run_id"]
