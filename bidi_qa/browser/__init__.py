"""Playwright browser collaborators."""

from .playwright_session import (
    PlaywrightAuthenticator,
    PlaywrightNavigator,
    PlaywrightSession,
    PlaywrightSessionProvider,
)

__all__ = [
    "PlaywrightAuthenticator",
    "PlaywrightNavigator",
    "PlaywrightSession",
    "PlaywrightSessionProvider",
]
