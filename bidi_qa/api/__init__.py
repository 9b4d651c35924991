"""
Remote API collaborators.

Token and template client, merge settings preflight, and merge report poller.
"""

from .client import CoursedogApiClient, base_url_for
from .merge_poller import MergeReportPoller
from .preflight import PreflightValidator

__all__ = [
    "CoursedogApiClient",
    "base_url_for",
    "MergeReportPoller",
    "PreflightValidator",
]
