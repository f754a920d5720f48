"""Relay routes."""
from mindone.routes.api import router

__all__ = ["router"]
