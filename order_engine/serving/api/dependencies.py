"""
Request Dependencies

Caller identity arrives in headers set by the authentication gateway in front
of this service and is trusted as given.
"""

from fastapi import Depends, Header, HTTPException, Request

from order_engine.database.connection import Database
from order_engine.engine.requests import Caller, Role
from order_engine.engine.service import OrderService


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


def get_caller(
    x_user_id: str = Header(..., min_length=1),
    x_user_role: Role = Header(Role.CUSTOMER),
) -> Caller:
    return Caller(user_id=x_user_id, role=Role(x_user_role))


def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return caller
