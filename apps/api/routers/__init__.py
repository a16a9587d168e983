"""Routers package."""

from . import (
    health,
    analytics,
    leads,
    shares,
)
