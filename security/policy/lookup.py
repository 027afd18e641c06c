"""
Lookup matching: find shells by specificAssetId under tenant visibility.

Rules:
  - A query is a non-empty list of name/value pairs. Any grant on a query
    attribute is ignored, a query carries no confidentiality of its own.
  - A shell matches iff EVERY query pair equals (name and value, exact and
    case-sensitive) some attribute of the shell visible to the accessor.
  - Matching looks at individual attribute visibility only, never at the
    shell's exposure tier.
  - Results are unique ids in ascending order, truncated to `limit`.

The matcher does not assume it sees every shell in the registry; callers
may pre-filter candidates and still get the same answer for those shells.
"""

from typing import Iterable, List, Optional, Sequence, Set, Tuple

from security.policy.exceptions import InvalidInputError
from security.policy.projection import ShellRecord
from security.policy.visibility import PublicVisibilityPolicy, visible_attributes


def normalize_query(query_attributes: Iterable) -> Tuple[Tuple[str, str], ...]:
    """
    Reduce query attributes to unique (name, value) pairs, keeping first-seen order.

    Accepts anything with `name` and `value` attributes, or 2-tuples.

    Raises:
        InvalidInputError: If the query is empty
    """
    pairs = []
    seen = set()
    for attribute in query_attributes:
        if isinstance(attribute, tuple):
            pair = (attribute[0], attribute[1])
        else:
            pair = (attribute.name, attribute.value)
        if pair not in seen:
            seen.add(pair)
            pairs.append(pair)

    if not pairs:
        raise InvalidInputError("Lookup requires at least one specificAssetId")
    return tuple(pairs)


def matches(
    record: ShellRecord,
    query: Sequence[Tuple[str, str]],
    accessor_tenant: Optional[str],
    policy: PublicVisibilityPolicy
) -> bool:
    """True if every query pair is satisfied by a visible attribute of the record"""
    visible: Set[Tuple[str, str]] = {
        (attribute.name, attribute.value)
        for attribute, _ in visible_attributes(
            record.specific_asset_ids, record.owner_tenant_id, accessor_tenant, policy
        )
    }
    return all(pair in visible for pair in query)


def match(
    records: Iterable[ShellRecord],
    query_attributes: Iterable,
    accessor_tenant: Optional[str],
    policy: PublicVisibilityPolicy,
    limit: Optional[int] = None
) -> List[str]:
    """
    Return ids of shells matching all query attributes for the accessor.

    Args:
        records: Candidate shell snapshots
        query_attributes: Name/value pairs to match (AND semantics)
        accessor_tenant: Tenant the request acts for (None = no tenant)
        policy: Public allow-list and wildcard sentinel
        limit: Optional maximum number of ids to return

    Returns:
        Sorted, de-duplicated list of shell ids

    Raises:
        InvalidInputError: Empty query or non-positive limit
    """
    query = normalize_query(query_attributes)
    if limit is not None and limit < 1:
        raise InvalidInputError(f"limit must be positive, got {limit}")

    matched = {
        record.id
        for record in records
        if matches(record, query, accessor_tenant, policy)
    }
    result = sorted(matched)

    if limit is not None:
        result = result[:limit]
    return result
