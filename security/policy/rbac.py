"""
Role-Based Access Control (RBAC) for registry operations.

Decides WHICH operation a caller may invoke at all. It knows nothing about
tenants or specificAssetId visibility; that is security.policy.tenancy's job,
and the two checks are applied one after the other, never merged.

Roles (from the token's resource_access claim):
  - view_digital_twin: read shells, submodels, lookups, description
  - add_digital_twin: create shells, submodels, specificAssetIds
  - update_digital_twin: replace shells and submodels
  - delete_digital_twin: delete shells, submodels, specificAssetIds
"""

from enum import Enum
from typing import Dict, Iterable


class Operation(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Roles:
    VIEW = "view_digital_twin"
    ADD = "add_digital_twin"
    UPDATE = "update_digital_twin"
    DELETE = "delete_digital_twin"


OPERATION_ROLES: Dict[Operation, str] = {
    Operation.READ: Roles.VIEW,
    Operation.CREATE: Roles.ADD,
    Operation.UPDATE: Roles.UPDATE,
    Operation.DELETE: Roles.DELETE,
}


def required_role(operation: Operation) -> str:
    return OPERATION_ROLES[operation]


def is_permitted(roles: Iterable[str], operation: Operation) -> bool:
    """Check whether any of the caller's roles unlocks the operation"""
    return required_role(operation) in set(roles)
