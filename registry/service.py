"""
Business logic for the shell registry.

The service layer sits between API endpoints and repositories.
It handles:
- Running every read through the tenant visibility policy
- Validating business rules (ownership capture, uniqueness)
- Formatting responses

Read paths never reveal whether a hidden shell exists: a shell that is
excluded for the accessor raises the same NotFoundError as a missing one.
Write paths are gated by RBAC only. They look shells up by id without
applying tenant visibility, so a write to a shell hidden from the caller
succeeds while a write to a missing shell raises NotFoundError.
"""

from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional, Sequence
import logging

from registry.config import RegistrySettings, get_settings
from registry.models import ShellDescriptor
from registry.repository import ShellRepository, SpecificAssetIdRepository, SubmodelRepository
from registry.schemas import (
    ShellDescriptorRequest, ShellDescriptorResponse, SpecificAssetIdSchema,
    SubmodelDescriptorSchema, paged
)
from registry.utils import decode_cursor, encode_cursor
from security.policy.exceptions import ConflictError, InvalidInputError, NotFoundError
from security.policy.lookup import match, normalize_query
from security.policy.projection import Projection, project
from security.policy.tenancy import TenantContext

logger = logging.getLogger(__name__)


# ============ Helpers ============

def resolve_limit(limit: Optional[int], settings: RegistrySettings) -> int:
    """Apply the default page size and cap it at the configured maximum"""
    if limit is None:
        return settings.paging.default_limit
    if limit < 1:
        raise InvalidInputError(f"limit must be positive, got {limit}")
    return min(limit, settings.paging.max_limit)


def shell_not_found(shell_id: str) -> NotFoundError:
    return NotFoundError(f"Shell for identifier {shell_id} not found")


def render_asset_ids(projection: Projection, is_owner: bool) -> List[Dict[str, Any]]:
    """
    Serialize visible specificAssetIds.

    Only the owner gets the externalSubjectId back; other tenants must not
    learn who else an attribute is shared with.
    """
    return [
        SpecificAssetIdSchema.from_attribute(attribute, include_grants=is_owner)
        .model_dump(by_alias=True, exclude_none=True)
        for attribute in projection.specific_asset_ids
    ]


def render_shell(projection: Projection, is_owner: bool) -> Dict[str, Any]:
    fields = dict(projection.fields)
    fields["submodel_descriptors"] = list(fields.get("submodel_descriptors", ()))
    response = ShellDescriptorResponse(
        **fields,
        specific_asset_ids=[
            SpecificAssetIdSchema.from_attribute(a, include_grants=is_owner)
            for a in projection.specific_asset_ids
        ],
    )
    return response.to_json()


def _visible_projection(
    shell: Optional[ShellDescriptor],
    shell_id: str,
    tenant: TenantContext,
    settings: RegistrySettings
) -> Projection:
    if shell is None:
        logger.debug(f"Shell {shell_id} does not exist")
        raise shell_not_found(shell_id)

    projection = project(shell.to_record(), tenant.tenant_id, settings.policy)
    if projection is None:
        logger.debug(f"Shell {shell_id} excluded for tenant {tenant.tenant_id}")
        raise shell_not_found(shell_id)
    return projection


def _existing_shell(db: Session, shell_id: str) -> ShellDescriptor:
    shell = ShellRepository.get_by_id(db, shell_id)
    if shell is None:
        raise shell_not_found(shell_id)
    return shell


def _is_owner(shell: ShellDescriptor, tenant: TenantContext) -> bool:
    return tenant.tenant_id is not None and tenant.tenant_id == shell.owner_tenant_id


class ShellService:
    """
    Business logic for shell descriptor operations.
    """

    @staticmethod
    def list_shells(
        db: Session,
        tenant: TenantContext,
        limit: Optional[int] = None,
        cursor: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        List shells visible to the tenant, projected per shell.

        Args:
            db: Database session
            tenant: Accessor tenant
            limit: Page size
            cursor: Opaque cursor from a previous page

        Returns:
            {"paging_metadata": {...}, "result": [descriptor, ...]}
        """
        settings = get_settings()
        page_size = resolve_limit(limit, settings)

        rows = ShellRepository.list_visible(
            db, tenant.tenant_id, settings.policy, page_size, decode_cursor(cursor)
        )
        has_more = len(rows) > page_size
        rows = rows[:page_size]

        result = []
        for shell in rows:
            projection = project(shell.to_record(), tenant.tenant_id, settings.policy)
            if projection is None:
                # The SQL pre-filter and the policy core disagree
                logger.error(f"Shell {shell.id} passed the SQL filter but is excluded in memory")
                continue
            result.append(render_shell(projection, _is_owner(shell, tenant)))

        next_cursor = encode_cursor(rows[-1].id) if has_more and rows else None
        logger.debug(f"Listed {len(result)} shells for tenant {tenant.tenant_id}")
        return paged(result, next_cursor)

    @staticmethod
    def get_shell(db: Session, shell_id: str, tenant: TenantContext) -> Dict[str, Any]:
        """
        Get one shell as the tenant may see it.

        Raises:
            NotFoundError: Shell missing or excluded for the tenant
        """
        settings = get_settings()
        shell = ShellRepository.get_by_id(db, shell_id)
        projection = _visible_projection(shell, shell_id, tenant, settings)
        return render_shell(projection, _is_owner(shell, tenant))

    @staticmethod
    def create_shell(
        db: Session,
        request: ShellDescriptorRequest,
        tenant: TenantContext
    ) -> Dict[str, Any]:
        """
        Register a shell. The accessor tenant becomes its owner, falling back
        to the configured owning tenant when the request carries none.

        Raises:
            InvalidInputError: No owner tenant can be determined
            ConflictError: A shell with this id already exists
        """
        settings = get_settings()
        owner = tenant.tenant_id or settings.tenancy.owning_tenant_id
        if not owner:
            raise InvalidInputError("No tenant given and no owning tenant configured")

        if ShellRepository.exists(db, request.id):
            raise ConflictError(f"Shell for identifier {request.id} already exists")

        shell = ShellRepository.create(db, request, owner_tenant_id=owner)
        projection = project(shell.to_record(), owner, settings.policy)
        return render_shell(projection, is_owner=True)

    @staticmethod
    def update_shell(db: Session, shell_id: str, request: ShellDescriptorRequest) -> None:
        """
        Replace a shell. The owner tenant is kept.
        Tenant visibility is not checked; any caller holding the update role
        may replace a shell it cannot read.

        Raises:
            InvalidInputError: Body id differs from the path id
            NotFoundError: Shell missing
        """
        if request.id != shell_id:
            raise InvalidInputError("Shell id in body does not match the path")
        shell = _existing_shell(db, shell_id)
        ShellRepository.replace(db, shell, request)

    @staticmethod
    def delete_shell(db: Session, shell_id: str) -> None:
        """Delete a shell by id. RBAC only, visibility does not apply."""
        shell = _existing_shell(db, shell_id)
        ShellRepository.delete(db, shell)


class SubmodelService:
    """
    Business logic for submodel descriptors of a shell.
    """

    @staticmethod
    def list_submodels(
        db: Session,
        shell_id: str,
        tenant: TenantContext,
        limit: Optional[int] = None,
        cursor: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        List submodel descriptors of a shell visible to the tenant.

        Paging follows the stored submodel order; the cursor is the id of
        the last submodel on the previous page.
        """
        settings = get_settings()
        page_size = resolve_limit(limit, settings)
        shell = ShellRepository.get_by_id(db, shell_id)
        projection = _visible_projection(shell, shell_id, tenant, settings)

        submodels = [SubmodelDescriptorSchema(**s) for s in projection.fields["submodel_descriptors"]]
        after = decode_cursor(cursor)
        if after is not None:
            ids = [s.id for s in submodels]
            if after not in ids:
                raise InvalidInputError("Unknown cursor")
            submodels = submodels[ids.index(after) + 1:]

        page = submodels[:page_size]
        next_cursor = encode_cursor(page[-1].id) if len(submodels) > page_size else None
        return paged([s.model_dump(by_alias=True, exclude_none=True) for s in page], next_cursor)

    @staticmethod
    def get_submodel(
        db: Session,
        shell_id: str,
        submodel_id: str,
        tenant: TenantContext
    ) -> Dict[str, Any]:
        settings = get_settings()
        shell = ShellRepository.get_by_id(db, shell_id)
        projection = _visible_projection(shell, shell_id, tenant, settings)

        for submodel in projection.fields["submodel_descriptors"]:
            if submodel["id"] == submodel_id:
                return SubmodelDescriptorSchema(**submodel).model_dump(by_alias=True, exclude_none=True)
        raise NotFoundError(f"Submodel for identifier {submodel_id} not found")

    @staticmethod
    def create_submodel(
        db: Session,
        shell_id: str,
        submodel: SubmodelDescriptorSchema
    ) -> Dict[str, Any]:
        """
        Add a submodel to any existing shell, visible to the caller or not.

        Raises:
            NotFoundError: Shell missing
            ConflictError: Submodel id already registered under the shell
        """
        shell = _existing_shell(db, shell_id)
        if SubmodelRepository.get(db, shell_id, submodel.id) is not None:
            raise ConflictError(f"Submodel for identifier {submodel.id} already exists")

        row = SubmodelRepository.add(db, shell, submodel)
        return SubmodelDescriptorSchema(**row.to_dict()).model_dump(by_alias=True, exclude_none=True)

    @staticmethod
    def update_submodel(
        db: Session,
        shell_id: str,
        submodel_id: str,
        submodel: SubmodelDescriptorSchema
    ) -> None:
        if submodel.id != submodel_id:
            raise InvalidInputError("Submodel id in body does not match the path")
        _existing_shell(db, shell_id)
        row = SubmodelRepository.get(db, shell_id, submodel_id)
        if row is None:
            raise NotFoundError(f"Submodel for identifier {submodel_id} not found")
        SubmodelRepository.replace(db, row, submodel)

    @staticmethod
    def delete_submodel(db: Session, shell_id: str, submodel_id: str) -> None:
        """Visibility does not apply to writes; only a missing shell or submodel is 404."""
        _existing_shell(db, shell_id)
        row = SubmodelRepository.get(db, shell_id, submodel_id)
        if row is None:
            raise NotFoundError(f"Submodel for identifier {submodel_id} not found")
        SubmodelRepository.delete(db, row)


class LookupService:
    """
    Business logic for discovery by specificAssetId.
    """

    @staticmethod
    def lookup_shells(
        db: Session,
        query_attributes: Sequence[SpecificAssetIdSchema],
        tenant: TenantContext,
        limit: Optional[int] = None,
        cursor: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Find ids of shells matching ALL query attributes for the tenant.

        SQL narrows the candidates, then the policy core makes the final
        call on exactly those candidates.

        Raises:
            InvalidInputError: Empty query, bad limit or cursor
        """
        settings = get_settings()
        pairs = normalize_query(query_attributes)
        page_size = resolve_limit(limit, settings)

        rows = ShellRepository.find_lookup_candidates(
            db, pairs, tenant.tenant_id, settings.policy, page_size, decode_cursor(cursor)
        )
        has_more = len(rows) > page_size
        rows = rows[:page_size]

        ids = match([r.to_record() for r in rows], pairs, tenant.tenant_id, settings.policy)
        next_cursor = encode_cursor(rows[-1].id) if has_more and rows else None

        logger.debug(
            f"Lookup by {len(pairs)} specificAssetIds for tenant {tenant.tenant_id}: {len(ids)} matches"
        )
        return paged(ids, next_cursor)

    @staticmethod
    def get_asset_ids(db: Session, shell_id: str, tenant: TenantContext) -> List[Dict[str, Any]]:
        """
        specificAssetIds of a shell that the tenant may see.

        Raises:
            NotFoundError: Shell missing or excluded for the tenant
        """
        settings = get_settings()
        shell = ShellRepository.get_by_id(db, shell_id)
        projection = _visible_projection(shell, shell_id, tenant, settings)
        return render_asset_ids(projection, _is_owner(shell, tenant))

    @staticmethod
    def replace_asset_ids(
        db: Session,
        shell_id: str,
        asset_ids: Sequence[SpecificAssetIdSchema]
    ) -> List[Dict[str, Any]]:
        """Replace all asset ids of a shell. Gated by RBAC only, like every write."""
        shell = _existing_shell(db, shell_id)
        SpecificAssetIdRepository.replace_for_shell(db, shell, asset_ids)
        return [a.model_dump(by_alias=True, exclude_none=True) for a in asset_ids]

    @staticmethod
    def delete_asset_ids(db: Session, shell_id: str) -> None:
        shell = _existing_shell(db, shell_id)
        SpecificAssetIdRepository.delete_for_shell(db, shell)
