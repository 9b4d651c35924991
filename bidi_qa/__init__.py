"""
Bi-directional QA runner

Collects a run plan through an interactive wizard and drives UI edit, SIS merge
and merge report verification runs against Academic Scheduling and Curriculum
Management tenants.
"""

__version__ = "0.1.0"
__author__ = "Bi-directional QA Team"

from .core.config import Config
from .core.exceptions import BidiQAError
from .core.logging_config import setup_logging
from .core.workflow import WorkflowManager

__all__ = [
    "Config",
    "BidiQAError",
    "setup_logging",
    "WorkflowManager",
]
