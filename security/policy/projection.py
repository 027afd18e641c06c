"""
Record projection: which parts of a shell an accessor gets back.

Exposure tiers:
  - FULL: owner, or at least one attribute explicitly granted to the accessor
  - RESTRICTED: only PUBLIC attributes visible; identity, submodel
    descriptors and the visible attributes are returned, nothing else
  - excluded: nothing visible at all, the shell does not exist for them

A shell with no specificAssetIds is therefore owner-only.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

from security.policy.visibility import (
    IdentifyingAttribute,
    PublicVisibilityPolicy,
    VisibilityTag,
    visible_attributes,
)


class ExposureTier(str, Enum):
    FULL = "full"
    RESTRICTED = "restricted"


@dataclass(frozen=True)
class ShellRecord:
    """
    Read-only snapshot of a shell descriptor handed to the policy core.

    Attributes:
        id: Shell identifier
        owner_tenant_id: Tenant that created the shell (never changes)
        display_fields: Scalar fields only FULL accessors may see
            (id_short, description, global_asset_id, ...)
        submodel_descriptors: Sub-resource descriptors, in stored order
        specific_asset_ids: Identifying attributes, in stored order
    """
    id: str
    owner_tenant_id: str
    display_fields: Mapping[str, Any] = field(default_factory=dict)
    submodel_descriptors: Tuple[Mapping[str, Any], ...] = ()
    specific_asset_ids: Tuple[IdentifyingAttribute, ...] = ()


@dataclass(frozen=True)
class Projection:
    """What one accessor may see of one shell"""
    tier: ExposureTier
    specific_asset_ids: Tuple[IdentifyingAttribute, ...]
    fields: Mapping[str, Any]


def project(
    record: ShellRecord,
    accessor_tenant: Optional[str],
    policy: PublicVisibilityPolicy
) -> Optional[Projection]:
    """
    Project a shell for an accessor.

    Args:
        record: Shell snapshot
        accessor_tenant: Tenant the request acts for (None = no tenant)
        policy: Public allow-list and wildcard sentinel

    Returns:
        Projection, or None when the shell is excluded for this accessor
    """
    visible = visible_attributes(
        record.specific_asset_ids, record.owner_tenant_id, accessor_tenant, policy
    )
    tags = {tag for _, tag in visible}

    if accessor_tenant is not None and accessor_tenant == record.owner_tenant_id:
        tier = ExposureTier.FULL
    elif VisibilityTag.EXPLICIT in tags:
        tier = ExposureTier.FULL
    elif VisibilityTag.PUBLIC in tags:
        tier = ExposureTier.RESTRICTED
    else:
        return None

    fields = {
        "id": record.id,
        "submodel_descriptors": record.submodel_descriptors,
    }
    if tier is ExposureTier.FULL:
        fields.update(record.display_fields)

    return Projection(
        tier=tier,
        specific_asset_ids=tuple(attribute for attribute, _ in visible),
        fields=MappingProxyType(fields),
    )
