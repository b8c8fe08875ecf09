"""
FastAPI dependencies shared by the routes.
"""

from typing import Annotated

from fastapi import Depends, Request

from approval_gate.approve.context import ApproveContext


def get_context(request: Request) -> ApproveContext:
    """Get the approve context the application was started with."""
    return request.app.state.context


# Type alias for dependency injection
Context = Annotated[ApproveContext, Depends(get_context)]
