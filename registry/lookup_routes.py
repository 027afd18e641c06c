"""
Discovery API endpoints.

Exposed endpoints:
- GET    /api/v3/lookup/shells?assetIds=...&limit=...&cursor=... - Shell ids matching ALL attributes
- GET    /api/v3/lookup/shells/{aasIdentifier} - specificAssetIds visible to the tenant
- POST   /api/v3/lookup/shells/{aasIdentifier} - Replace the specificAssetIds of a shell
- DELETE /api/v3/lookup/shells/{aasIdentifier} - Remove all specificAssetIds of a shell

Each `assetIds` value is a base64url-encoded JSON object, e.g.
base64url('{"name": "manufacturerPartId", "value": "123-456"}').
"""

from fastapi import APIRouter, Body, Depends, Query, Response
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from auth.rbac_dependencies import require_add, require_delete, require_view
from registry.database import DatabaseManager
from registry.schemas import SpecificAssetIdSchema
from registry.service import LookupService
from registry.utils import decode_asset_ids, decode_identifier, get_tenant_context, http_error
from security.policy.exceptions import RegistryError
from security.policy.tenancy import TenantContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v3/lookup", tags=["lookup"])


@router.get("/shells")
async def lookup_shells(
    asset_ids: Optional[List[str]] = Query(None, alias="assetIds"),
    limit: Optional[int] = Query(None),
    cursor: Optional[str] = Query(None),
    user: dict = Depends(require_view),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(DatabaseManager.get_session)
):
    """
    Find shells that have a visible specificAssetId for EVERY query attribute.

    Returns:
        {"paging_metadata": {"cursor": ...}, "result": ["<shell id>", ...]}
    """
    try:
        query_attributes = decode_asset_ids(asset_ids)
        return LookupService.lookup_shells(db, query_attributes, tenant, limit=limit, cursor=cursor)
    except RegistryError as e:
        raise http_error(e)


@router.get("/shells/{aas_identifier}")
async def get_all_asset_links_by_id(
    aas_identifier: str,
    user: dict = Depends(require_view),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(DatabaseManager.get_session)
):
    try:
        shell_id = decode_identifier(aas_identifier)
        return LookupService.get_asset_ids(db, shell_id, tenant)
    except RegistryError as e:
        raise http_error(e)


@router.post("/shells/{aas_identifier}", status_code=201)
async def post_all_asset_links_by_id(
    aas_identifier: str,
    asset_ids: List[SpecificAssetIdSchema] = Body(...),
    user: dict = Depends(require_add),
    db: Session = Depends(DatabaseManager.get_session)
):
    """Replace every specificAssetId of the shell with the posted list"""
    try:
        shell_id = decode_identifier(aas_identifier)
        return LookupService.replace_asset_ids(db, shell_id, asset_ids)
    except RegistryError as e:
        raise http_error(e)


@router.delete("/shells/{aas_identifier}", status_code=204)
async def delete_all_asset_links_by_id(
    aas_identifier: str,
    user: dict = Depends(require_delete),
    db: Session = Depends(DatabaseManager.get_session)
):
    try:
        shell_id = decode_identifier(aas_identifier)
        LookupService.delete_asset_ids(db, shell_id)
    except RegistryError as e:
        raise http_error(e)
    return Response(status_code=204)
