from __future__ import annotations

from typing import Optional

from fastapi import Header, Request

from ..auth import Principal, TokenValidator
from ..service import WorkflowService


def get_service(request: Request) -> WorkflowService:
    return request.app.state.service


def current_user(
    request: Request, authorization: Optional[str] = Header(default=None)
) -> Principal:
    validator: TokenValidator = request.app.state.validator
    return validator.authenticate(authorization)
