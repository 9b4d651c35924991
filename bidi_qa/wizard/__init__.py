"""
Configuration wizard components.

Terminal dialogue, action catalog and session persistence that together
produce a RunPlan.
"""

from .models import Action, Product, PromptKind, RunPlan, SessionRecord
from .session_store import SessionStore
from .wizard import ConfigurationWizard

__all__ = [
    "Action",
    "Product",
    "PromptKind",
    "RunPlan",
    "SessionRecord",
    "SessionStore",
    "ConfigurationWizard",
]
