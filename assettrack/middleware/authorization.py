from fastapi import Depends, HTTPException, status

from assettrack.middleware.auth import get_current_user

ADMIN = "admin"
FACILITATOR = "facilitator"


def require_roles(*allowed_roles: str):
    """
    FastAPI dependency factory for role-based access control.

    Usage:
        @router.post("/{request_id}/approve")
        async def approve(
            current_user: dict = Depends(require_roles("admin")),
        ):
    """
    async def check_role(current_user: dict = Depends(get_current_user)) -> dict:
        if current_user["role"] not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": {
                        "code": "INSUFFICIENT_PERMISSIONS",
                        "message": (
                            f"Role '{current_user['role']}' cannot perform this action. "
                            f"Required: {allowed_roles}"
                        ),
                    }
                },
            )
        return current_user

    return check_role


def require_locations(current_user: dict) -> list[str]:
    """Facilitators without any assigned location can see nothing."""
    locations = current_user.get("location_ids") or []
    if not locations:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": {
                    "code": "NO_ASSIGNED_LOCATIONS",
                    "message": "No locations are assigned to this facilitator",
                }
            },
        )
    return locations
