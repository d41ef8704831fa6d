"""
Fleet Server module.

This module contains the FastAPI app that serves a live lifecycle
manager's records over HTTP. It is started by the fleet controller.
"""

from .app import create_app, get_manager

__all__ = ["create_app", "get_manager"]
