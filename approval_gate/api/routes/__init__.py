"""
API routes module.
"""

from approval_gate.api.routes.approvals import router as approvals_router
from approval_gate.api.routes.auth import router as auth_router
from approval_gate.api.routes.health import router as health_router

__all__ = ["approvals_router", "auth_router", "health_router"]
