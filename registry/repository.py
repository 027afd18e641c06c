"""
Data access layer for the shell registry.

The repository pattern isolates database operations from business logic.
Tenant visibility is pushed into SQL here as a pre-filter; the predicate
below selects exactly the specificAssetIds that
security.policy.visibility.classify tags as anything but HIDDEN.

Repository methods:
- ShellDescriptor: create, get, list_visible, replace, delete
- SpecificAssetId: find_lookup_candidates, replace_for_shell, delete_for_shell
- SubmodelDescriptor: get, add, replace, delete
"""

from sqlalchemy.orm import Session, aliased
from sqlalchemy import and_, or_, exists
from typing import List, Optional, Sequence, Tuple
import logging

from registry.models import (
    ShellDescriptor, SpecificAssetId, SpecificAssetIdGrant, SubmodelDescriptor
)
from registry.schemas import (
    ShellDescriptorRequest, SpecificAssetIdSchema, SubmodelDescriptorSchema
)
from security.policy.visibility import PublicVisibilityPolicy

logger = logging.getLogger(__name__)


# ============ Visibility predicates ============

def visible_asset_clause(accessor_tenant: Optional[str], policy: PublicVisibilityPolicy):
    """
    SQL twin of classify(): true for SpecificAssetId rows the accessor may see.

    Must be used where both SpecificAssetId and its ShellDescriptor are in
    scope (joined, or correlated from an enclosing query).
    """
    wildcard_grant = aliased(SpecificAssetIdGrant)
    tenant_grant = aliased(SpecificAssetIdGrant)

    has_wildcard = exists().where(
        wildcard_grant.asset_pk == SpecificAssetId.pk,
        wildcard_grant.tenant_id == policy.wildcard,
    )

    public = and_(
        SpecificAssetId.has_grant == True,
        has_wildcard,
        SpecificAssetId.name.in_(sorted(policy.allowed_types)),
    )

    if accessor_tenant is None:
        return public

    owner = ShellDescriptor.owner_tenant_id == accessor_tenant
    explicit = and_(
        SpecificAssetId.has_grant == True,
        ~has_wildcard,
        exists().where(
            tenant_grant.asset_pk == SpecificAssetId.pk,
            tenant_grant.tenant_id == accessor_tenant,
        ),
    )
    return or_(owner, public, explicit)


def visible_shell_clause(accessor_tenant: Optional[str], policy: PublicVisibilityPolicy):
    """True for shells that are not excluded for the accessor"""
    any_visible = exists().where(
        SpecificAssetId.shell_id == ShellDescriptor.id,
        visible_asset_clause(accessor_tenant, policy),
    )
    if accessor_tenant is None:
        return any_visible
    return or_(ShellDescriptor.owner_tenant_id == accessor_tenant, any_visible)


def _asset_rows(asset_ids: Sequence[SpecificAssetIdSchema]) -> List[SpecificAssetId]:
    rows = []
    for position, asset in enumerate(asset_ids):
        grants = asset.grants()
        rows.append(SpecificAssetId(
            position=position,
            name=asset.name,
            value=asset.value,
            has_grant=grants is not None,
            grants=[SpecificAssetIdGrant(tenant_id=t) for t in dict.fromkeys(grants or [])],
        ))
    return rows


def _submodel_row(submodel: SubmodelDescriptorSchema, position: int) -> SubmodelDescriptor:
    return SubmodelDescriptor(
        position=position,
        submodel_id=submodel.id,
        id_short=submodel.id_short,
        description=[d.model_dump() for d in submodel.description] if submodel.description else [],
        semantic_id=submodel.semantic_id.model_dump() if submodel.semantic_id else None,
        endpoints=submodel.endpoints,
    )


def _apply_submodel_fields(row: SubmodelDescriptor, submodel: SubmodelDescriptorSchema) -> None:
    row.id_short = submodel.id_short
    row.description = [d.model_dump() for d in submodel.description] if submodel.description else []
    row.semantic_id = submodel.semantic_id.model_dump() if submodel.semantic_id else None
    row.endpoints = submodel.endpoints


def _apply_shell_fields(shell: ShellDescriptor, request: ShellDescriptorRequest) -> None:
    shell.id_short = request.id_short
    shell.description = [d.model_dump() for d in request.description] if request.description else []
    shell.display_name = [d.model_dump() for d in request.display_name] if request.display_name else []
    shell.global_asset_id = request.global_asset_id
    shell.asset_kind = request.asset_kind
    shell.asset_type = request.asset_type


class ShellRepository:
    """
    Repository for ShellDescriptor database operations.

    Encapsulates all SQL queries related to shells.
    """

    @staticmethod
    def create(
        db: Session,
        request: ShellDescriptorRequest,
        owner_tenant_id: str
    ) -> ShellDescriptor:
        """
        Create a shell with its specificAssetIds and submodel descriptors.

        Args:
            db: Database session
            request: Validated descriptor
            owner_tenant_id: Tenant recorded as owner (never changed afterwards)

        Returns:
            Created ShellDescriptor
        """
        shell = ShellDescriptor(id=request.id, owner_tenant_id=owner_tenant_id)
        _apply_shell_fields(shell, request)
        shell.specific_asset_ids = _asset_rows(request.specific_asset_ids)
        shell.submodel_descriptors = [
            _submodel_row(s, position) for position, s in enumerate(request.submodel_descriptors)
        ]
        db.add(shell)
        db.commit()
        db.refresh(shell)

        logger.info(f"Created shell {shell.id} for tenant {owner_tenant_id}")
        return shell

    @staticmethod
    def exists(db: Session, shell_id: str) -> bool:
        return db.query(exists().where(ShellDescriptor.id == shell_id)).scalar()

    @staticmethod
    def get_by_id(db: Session, shell_id: str) -> Optional[ShellDescriptor]:
        """
        Get a shell by id, with no tenant filtering.

        Callers on read paths must run the result through the policy core.
        """
        return db.query(ShellDescriptor).filter(ShellDescriptor.id == shell_id).first()

    @staticmethod
    def list_visible(
        db: Session,
        accessor_tenant: Optional[str],
        policy: PublicVisibilityPolicy,
        limit: int,
        after_id: Optional[str] = None
    ) -> List[ShellDescriptor]:
        """
        List shells not excluded for the accessor, ordered by id.

        Args:
            db: Database session
            accessor_tenant: Tenant the request acts for
            policy: Public allow-list and wildcard
            limit: Page size (one extra row is fetched to detect a next page)
            after_id: Cursor, only ids strictly greater are returned

        Returns:
            Up to limit + 1 ShellDescriptor rows
        """
        query = db.query(ShellDescriptor).filter(visible_shell_clause(accessor_tenant, policy))
        if after_id is not None:
            query = query.filter(ShellDescriptor.id > after_id)

        return query.order_by(ShellDescriptor.id).limit(limit + 1).all()

    @staticmethod
    def find_lookup_candidates(
        db: Session,
        query_pairs: Sequence[Tuple[str, str]],
        accessor_tenant: Optional[str],
        policy: PublicVisibilityPolicy,
        limit: int,
        after_id: Optional[str] = None
    ) -> List[ShellDescriptor]:
        """
        Shells with a visible specificAssetId for EVERY (name, value) pair.

        Returns:
            Up to limit + 1 ShellDescriptor rows, ordered by id
        """
        query = db.query(ShellDescriptor)
        for name, value in query_pairs:
            query = query.filter(exists().where(
                SpecificAssetId.shell_id == ShellDescriptor.id,
                SpecificAssetId.name == name,
                SpecificAssetId.value == value,
                visible_asset_clause(accessor_tenant, policy),
            ))
        if after_id is not None:
            query = query.filter(ShellDescriptor.id > after_id)

        return query.order_by(ShellDescriptor.id).limit(limit + 1).all()

    @staticmethod
    def replace(
        db: Session,
        shell: ShellDescriptor,
        request: ShellDescriptorRequest
    ) -> ShellDescriptor:
        """
        Replace every field of a shell except its id and owner.
        """
        _apply_shell_fields(shell, request)
        # Flush the orphan deletes first, new rows may reuse submodel ids
        shell.specific_asset_ids = []
        shell.submodel_descriptors = []
        db.flush()

        shell.specific_asset_ids = _asset_rows(request.specific_asset_ids)
        shell.submodel_descriptors = [
            _submodel_row(s, position) for position, s in enumerate(request.submodel_descriptors)
        ]
        db.commit()
        db.refresh(shell)

        logger.info(f"Replaced shell {shell.id}")
        return shell

    @staticmethod
    def delete(db: Session, shell: ShellDescriptor) -> None:
        db.delete(shell)
        db.commit()
        logger.info(f"Deleted shell {shell.id}")


class SpecificAssetIdRepository:
    """
    Repository for the specificAssetIds of one shell.
    """

    @staticmethod
    def replace_for_shell(
        db: Session,
        shell: ShellDescriptor,
        asset_ids: Sequence[SpecificAssetIdSchema]
    ) -> ShellDescriptor:
        shell.specific_asset_ids = _asset_rows(asset_ids)
        db.commit()
        db.refresh(shell)

        logger.info(f"Replaced {len(asset_ids)} specificAssetIds of shell {shell.id}")
        return shell

    @staticmethod
    def delete_for_shell(db: Session, shell: ShellDescriptor) -> None:
        shell.specific_asset_ids = []
        db.commit()
        logger.info(f"Deleted specificAssetIds of shell {shell.id}")


class SubmodelRepository:
    """
    Repository for SubmodelDescriptor database operations.
    """

    @staticmethod
    def get(db: Session, shell_id: str, submodel_id: str) -> Optional[SubmodelDescriptor]:
        return db.query(SubmodelDescriptor).filter(
            and_(
                SubmodelDescriptor.shell_id == shell_id,
                SubmodelDescriptor.submodel_id == submodel_id
            )
        ).first()

    @staticmethod
    def add(
        db: Session,
        shell: ShellDescriptor,
        submodel: SubmodelDescriptorSchema
    ) -> SubmodelDescriptor:
        position = max((s.position for s in shell.submodel_descriptors), default=-1) + 1
        row = _submodel_row(submodel, position)
        shell.submodel_descriptors.append(row)
        db.commit()
        db.refresh(row)

        logger.info(f"Added submodel {submodel.id} to shell {shell.id}")
        return row

    @staticmethod
    def replace(
        db: Session,
        row: SubmodelDescriptor,
        submodel: SubmodelDescriptorSchema
    ) -> SubmodelDescriptor:
        _apply_submodel_fields(row, submodel)
        db.commit()
        db.refresh(row)
        return row

    @staticmethod
    def delete(db: Session, row: SubmodelDescriptor) -> None:
        db.delete(row)
        db.commit()
        logger.info(f"Deleted submodel {row.submodel_id} of shell {row.shell_id}")
