"""
Statistics API Routes
=====================

Endpoints:
- GET /stats/system          — Registry-wide aggregates
- GET /stats/collaborations  — Collaboration counts and averages
"""

from fastapi import APIRouter, Depends

from agentmesh.api.deps import get_system
from agentmesh.system import CoordinationSystem

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/system")
async def system_metrics(system: CoordinationSystem = Depends(get_system)):
    return system.get_system_metrics()


@router.get("/collaborations")
async def collaboration_stats(system: CoordinationSystem = Depends(get_system)):
    return system.get_collaboration_stats()
