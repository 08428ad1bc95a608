"""Retail Ops — FastAPI dependencies (auth, DB, permissions)."""
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status

from app.db.session import get_db  # noqa: F401  (endpoints import it from here)

# ── Permission keys ─────────────────────────────────────────────────────────
# Route files use these constants, never raw permission strings.
PERM_PURCHASE_ORDERS_READ = "purchase_orders:read"
PERM_PURCHASE_ORDERS_WRITE = "purchase_orders:write"
PERM_PURCHASE_ORDERS_RECEIVE = "purchase_orders:receive"

# ── Role → permissions matrix ────────────────────────────────────────────────
PERMISSION_MATRIX: dict[str, set[str]] = {
    "STORE_ADMIN": {PERM_PURCHASE_ORDERS_READ, PERM_PURCHASE_ORDERS_WRITE, PERM_PURCHASE_ORDERS_RECEIVE},
    "MANAGER": {PERM_PURCHASE_ORDERS_READ, PERM_PURCHASE_ORDERS_WRITE, PERM_PURCHASE_ORDERS_RECEIVE},
    "STOCK_CLERK": {PERM_PURCHASE_ORDERS_READ, PERM_PURCHASE_ORDERS_RECEIVE},
    "STAFF": {PERM_PURCHASE_ORDERS_READ},
}


class CurrentUser:
    """User identity from the access token — set on request.state by middleware."""

    def __init__(
        self,
        id: UUID,
        email: str,
        store_id: UUID,
        role: str,
    ):
        self.id = id
        self.email = email
        self.store_id = store_id
        self.role = role

    def has_permission(self, permission: str) -> bool:
        return permission in PERMISSION_MATRIX.get(self.role, set())


async def require_auth(request: Request) -> CurrentUser:
    """Require authenticated user. Raise 401 if not logged in."""
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user


def require_permission(permission: str):
    """Dependency factory: require specific RBAC permission."""

    async def _check(user: CurrentUser = Depends(require_auth)) -> CurrentUser:
        if not user.has_permission(permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: '{permission}' required. Your role: {user.role}",
            )
        return user

    return _check
