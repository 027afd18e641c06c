"""
Role-Based Access Control (RBAC) dependencies for FastAPI.
Provides reusable dependency functions to protect registry routes.

Authentication failures are 401, a valid token without the role for the
operation is 403. Tenant visibility is applied afterwards by the service
layer and is independent of these checks.
"""

from fastapi import Depends, HTTPException, Header
from auth.auth_manager import auth_manager
from loguru import logger

from registry.config import get_settings
from security.policy.rbac import Operation, is_permitted, required_role

# ==================== DEPENDENCY FUNCTIONS ====================

async def verify_jwt_token(authorization: str = Header(None)) -> dict:
    """
    Dependency: Verify JWT token and return payload.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing authorization token")

    token = authorization[len("Bearer "):].strip()
    payload = auth_manager.verify_token(token)

    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return payload


def require_operation(operation: Operation):
    """
    Dependency factory: Require the role that unlocks an operation.
    """
    async def _require_operation(user: dict = Depends(verify_jwt_token)) -> dict:
        client_id = get_settings().auth_client_id
        user_roles = auth_manager.roles_from_payload(user, client_id)

        if not is_permitted(user_roles, operation):
            logger.warning(
                f"Subject {user.get('sub')} attempted {operation.value} "
                f"without role {required_role(operation)}"
            )
            raise HTTPException(
                status_code=403,
                detail=f"Role '{required_role(operation)}' required"
            )

        return user

    return _require_operation


# ==================== COMMONLY USED DEPENDENCIES ====================

require_view = require_operation(Operation.READ)
require_add = require_operation(Operation.CREATE)
require_update = require_operation(Operation.UPDATE)
require_delete = require_operation(Operation.DELETE)
