"""Authentication dependencies resolving the acting user from a bearer token."""

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException

from backend.app.core.errors import UnauthorizedError
from backend.app.core.security import decode_access_token

MANAGER_ROLES = {"Owner", "Manager", "Administrator"}


@dataclass(frozen=True)
class Actor:
    user_id: str
    org_id: int
    role: str

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES


def get_current_actor(authorization: str | None = Header(default=None)) -> Actor:
    # Expect Authorization: Bearer <token>
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")
    token = authorization.split(" ", 1)[1]
    try:
        payload = decode_access_token(token)
    except ValueError:
        raise HTTPException(status_code=401, detail="Not authenticated")

    subject = payload.get("sub")
    try:
        org_id = int(payload.get("org_id"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Not authenticated")
    if not subject:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return Actor(user_id=str(subject), org_id=org_id, role=str(payload.get("role") or ""))


def require_manager(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Dependency for operations reserved to owners, managers and administrators."""
    if not actor.is_manager:
        raise UnauthorizedError("Only owners, managers or administrators can perform this action.")
    return actor


def ensure_same_org(actor: Actor, org_id: int, resource: str = "resource") -> None:
    if actor.org_id != org_id:
        raise UnauthorizedError(f"You do not have access to this {resource}.")
