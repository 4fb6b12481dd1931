"""Auth routes - caller identity."""

from fastapi import APIRouter, Depends

from staybook.api.auth import get_current_user
from staybook.domain.access import Principal

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/whoami")
def whoami(user: Principal = Depends(get_current_user)) -> dict:
    """Return the authenticated principal: id, role, email, name."""
    name = " ".join(p for p in (user.first_name, user.last_name) if p) or None
    return {
        "id": user.id,
        "role": user.role,
        "email": user.email,
        "name": name,
    }
