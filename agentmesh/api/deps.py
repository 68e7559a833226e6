"""
Shared API Dependencies
========================

Route modules reach the coordination services through the application
state; nothing here is a module-level singleton.

Usage:
    from ..deps import get_system
"""

from fastapi import HTTPException, Request

from agentmesh.system import CoordinationSystem

__all__ = ["get_system"]


def get_system(request: Request) -> CoordinationSystem:
    """Return the CoordinationSystem attached to the running app."""
    system = getattr(request.app.state, "system", None)
    if system is None:
        raise HTTPException(status_code=503, detail="Coordination system not initialized")
    return system
