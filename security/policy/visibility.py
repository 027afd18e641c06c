"""
Per-attribute visibility classification for specificAssetIds.

Every identifying attribute of a shell carries an optional grant:
  - no grant: closed, only the owning tenant sees it
  - a set of tenant ids: those tenants see it
  - the public wildcard: everybody sees it, but ONLY if the attribute name
    is on the operator's public allow-list

Decision order (first match wins):
  1. accessor owns the shell          -> OWNER
  2. no grant                         -> HIDDEN
  3. grant contains the wildcard      -> PUBLIC if name is allow-listed,
                                         HIDDEN otherwise
  4. grant contains the accessor      -> EXPLICIT
  5. anything else                    -> HIDDEN

Classes:
  - VisibilityTag: Result of a classification
  - IdentifyingAttribute: name/value pair with optional grant
  - PublicVisibilityPolicy: Allow-list + wildcard sentinel (immutable)

Functions are pure: no I/O, no logging, no shared mutable state.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple

DEFAULT_PUBLIC_WILDCARD = "PUBLIC_READABLE"


class VisibilityTag(str, Enum):
    """How an accessor gets to see one attribute"""
    OWNER = "owner"
    EXPLICIT = "explicit"
    PUBLIC = "public"
    HIDDEN = "hidden"


@dataclass(frozen=True)
class IdentifyingAttribute:
    """
    A specificAssetId as the policy core sees it.

    Attributes:
        name: Semantic key (e.g. "manufacturerPartId")
        value: The identifier value
        grants: None when closed, otherwise the tenant ids (and possibly
            the wildcard sentinel) allowed to see this attribute
    """
    name: str
    value: str
    grants: Optional[FrozenSet[str]] = None

    @classmethod
    def create(
        cls,
        name: str,
        value: str,
        grants: Optional[Iterable[str]] = None
    ) -> "IdentifyingAttribute":
        """Build an attribute, normalising any iterable of grants into a frozenset"""
        return cls(
            name=name,
            value=value,
            grants=frozenset(grants) if grants is not None else None
        )


@dataclass(frozen=True)
class PublicVisibilityPolicy:
    """
    Operator policy for wildcard disclosure.

    Passed explicitly into every classify/project/match call. Instances are
    immutable; a reload builds a new instance.
    """
    allowed_types: FrozenSet[str] = field(default_factory=frozenset)
    wildcard: str = DEFAULT_PUBLIC_WILDCARD

    def is_public_type(self, name: str) -> bool:
        return name in self.allowed_types


def classify(
    attribute: IdentifyingAttribute,
    owner_tenant: Optional[str],
    accessor_tenant: Optional[str],
    policy: PublicVisibilityPolicy
) -> VisibilityTag:
    """
    Classify one attribute for one accessor.

    Args:
        attribute: The attribute to classify
        owner_tenant: Tenant that created the shell
        accessor_tenant: Tenant the request acts for (None = no tenant)
        policy: Public allow-list and wildcard sentinel

    Returns:
        The VisibilityTag for this accessor

    Example:
        >>> policy = PublicVisibilityPolicy(frozenset({"manufacturerPartId"}))
        >>> attr = IdentifyingAttribute.create("manufacturerPartId", "X", ["PUBLIC_READABLE"])
        >>> classify(attr, "BPNL_A", "BPNL_B", policy)
        <VisibilityTag.PUBLIC: 'public'>
    """
    if accessor_tenant is not None and accessor_tenant == owner_tenant:
        return VisibilityTag.OWNER

    grants = attribute.grants
    if grants is None:
        return VisibilityTag.HIDDEN

    if policy.wildcard in grants:
        if policy.is_public_type(attribute.name):
            return VisibilityTag.PUBLIC
        return VisibilityTag.HIDDEN

    if accessor_tenant is not None and accessor_tenant in grants:
        return VisibilityTag.EXPLICIT

    return VisibilityTag.HIDDEN


def visible_attributes(
    attributes: Iterable[IdentifyingAttribute],
    owner_tenant: Optional[str],
    accessor_tenant: Optional[str],
    policy: PublicVisibilityPolicy
) -> Tuple[Tuple[IdentifyingAttribute, VisibilityTag], ...]:
    """
    Return the (attribute, tag) pairs the accessor may see, in input order.

    The input is never modified; HIDDEN attributes are simply left out of
    the returned tuple.
    """
    tagged = (
        (attribute, classify(attribute, owner_tenant, accessor_tenant, policy))
        for attribute in attributes
    )
    return tuple(pair for pair in tagged if pair[1] is not VisibilityTag.HIDDEN)
