"""
Main API router
"""
from fastapi import APIRouter

from app.api.v1 import (
    health,
    version,
    auth,
    employees,
    leave_types,
    leaves,
    approvals,
    balances,
    carry_forward,
    notifications,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(version.router, tags=["version"])
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(employees.router, prefix="/employees", tags=["employees"])
api_router.include_router(leave_types.router, prefix="/leave-types", tags=["leave-types"])
api_router.include_router(leaves.router, prefix="/leaves", tags=["leaves"])
api_router.include_router(approvals.router, prefix="/approvals", tags=["approvals"])
api_router.include_router(balances.router, prefix="/balances", tags=["balances"])
api_router.include_router(carry_forward.router, prefix="/carry-forwards", tags=["carry-forwards"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
