"""Request dependencies: caller identity and the order lifecycle service.

Authentication happens upstream; the gateway forwards the authenticated
user's id and role as ``X-User-Id`` and ``X-User-Role`` headers.
"""

from dataclasses import dataclass

from fastapi import Depends, Header, Request

from ordering.errors import AccessDenied, Unauthenticated
from ordering.order.lifecycle import OrderLifecycle


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def current_identity(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Identity:
    if not x_user_id:
        raise Unauthenticated("Authentication required")
    return Identity(user_id=x_user_id, role=(x_user_role or "user").strip().lower())


def admin_identity(identity: Identity = Depends(current_identity)) -> Identity:
    if not identity.is_admin:
        raise AccessDenied("Admin access required")
    return identity


def get_lifecycle(request: Request) -> OrderLifecycle:
    return request.app.state.lifecycle
