"""
API module.
Contains the FastAPI administration application, routes, and middleware.
"""

from approval_gate.api.main import create_app, run

__all__ = ["create_app", "run"]
