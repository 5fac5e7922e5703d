from typing import Optional

from fastapi import Cookie, Depends, Header, Request

from constants import AUTH_COOKIE_NAME, AUTH_HEADER_NAME
from services.auth import AuthorizationGate, ScopedIdentity
from services.lifecycle import LifecycleManager


def get_lifecycle(request: Request) -> LifecycleManager:
    return request.app.state.lifecycle

def get_gate(request: Request) -> AuthorizationGate:
    return request.app.state.gate


def get_scoped_identity(
    room_id: str,
    header_token: Optional[str] = Header(default=None, alias=AUTH_HEADER_NAME),
    cookie_token: Optional[str] = Cookie(default=None, alias=AUTH_COOKIE_NAME),
    gate: AuthorizationGate = Depends(get_gate),
) -> ScopedIdentity:
    return gate.authorize(room_id, header_token or cookie_token)
