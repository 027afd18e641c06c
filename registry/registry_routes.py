"""
Shell registry API endpoints.

Exposed endpoints (identifiers are base64url encoded):
- GET    /api/v3/shell-descriptors - List shells visible to the tenant
- POST   /api/v3/shell-descriptors - Register a shell
- GET    /api/v3/shell-descriptors/{aasIdentifier} - Get a shell
- PUT    /api/v3/shell-descriptors/{aasIdentifier} - Replace a shell
- DELETE /api/v3/shell-descriptors/{aasIdentifier} - Delete a shell
- GET    /api/v3/shell-descriptors/{aasIdentifier}/submodel-descriptors - List submodels
- POST   /api/v3/shell-descriptors/{aasIdentifier}/submodel-descriptors - Add a submodel
- GET    /api/v3/shell-descriptors/{aasIdentifier}/submodel-descriptors/{submodelIdentifier}
- PUT    /api/v3/shell-descriptors/{aasIdentifier}/submodel-descriptors/{submodelIdentifier}
- DELETE /api/v3/shell-descriptors/{aasIdentifier}/submodel-descriptors/{submodelIdentifier}
- GET    /api/v3/description - Supported service profiles
"""

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session
from typing import Optional
import logging

from auth.rbac_dependencies import require_add, require_delete, require_update, require_view
from registry.database import DatabaseManager
from registry.schemas import ShellDescriptorRequest, SubmodelDescriptorSchema
from registry.service import ShellService, SubmodelService
from registry.utils import decode_identifier, get_tenant_context, http_error
from security.policy.exceptions import RegistryError
from security.policy.tenancy import TenantContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v3", tags=["shell-descriptors"])

SERVICE_PROFILES = [
    "https://admin-shell.io/aas/API/3/0/AssetAdministrationShellRegistryServiceSpecification/SSP-001",
    "https://admin-shell.io/aas/API/3/0/DiscoveryServiceSpecification/SSP-001",
]


# ==================== SHELL DESCRIPTORS ====================

@router.get("/shell-descriptors")
async def list_shell_descriptors(
    limit: Optional[int] = Query(None),
    cursor: Optional[str] = Query(None),
    user: dict = Depends(require_view),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(DatabaseManager.get_session)
):
    """
    List shells the tenant may see.

    Every entry is projected: RESTRICTED shells only carry id,
    submodelDescriptors and their public specificAssetIds.
    """
    try:
        return ShellService.list_shells(db, tenant, limit=limit, cursor=cursor)
    except RegistryError as e:
        raise http_error(e)


@router.post("/shell-descriptors", status_code=201)
async def create_shell_descriptor(
    request: ShellDescriptorRequest,
    user: dict = Depends(require_add),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(DatabaseManager.get_session)
):
    """
    Register a shell. The calling tenant becomes its owner.

    Example request:
        {
            "id": "urn:uuid:5d1c3a...",
            "idShort": "gearbox",
            "specificAssetIds": [
                {"name": "manufacturerPartId", "value": "123-456",
                 "externalSubjectId": {"type": "ExternalReference",
                                       "keys": [{"type": "GlobalReference", "value": "PUBLIC_READABLE"}]}}
            ]
        }
    """
    try:
        return ShellService.create_shell(db, request, tenant)
    except RegistryError as e:
        raise http_error(e)


@router.get("/shell-descriptors/{aas_identifier}")
async def get_shell_descriptor(
    aas_identifier: str,
    user: dict = Depends(require_view),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(DatabaseManager.get_session)
):
    try:
        shell_id = decode_identifier(aas_identifier)
        return ShellService.get_shell(db, shell_id, tenant)
    except RegistryError as e:
        raise http_error(e)


@router.put("/shell-descriptors/{aas_identifier}", status_code=204)
async def update_shell_descriptor(
    aas_identifier: str,
    request: ShellDescriptorRequest,
    user: dict = Depends(require_update),
    db: Session = Depends(DatabaseManager.get_session)
):
    try:
        shell_id = decode_identifier(aas_identifier)
        ShellService.update_shell(db, shell_id, request)
    except RegistryError as e:
        raise http_error(e)
    return Response(status_code=204)


@router.delete("/shell-descriptors/{aas_identifier}", status_code=204)
async def delete_shell_descriptor(
    aas_identifier: str,
    user: dict = Depends(require_delete),
    db: Session = Depends(DatabaseManager.get_session)
):
    try:
        shell_id = decode_identifier(aas_identifier)
        ShellService.delete_shell(db, shell_id)
    except RegistryError as e:
        raise http_error(e)
    return Response(status_code=204)


# ==================== SUBMODEL DESCRIPTORS ====================

@router.get("/shell-descriptors/{aas_identifier}/submodel-descriptors")
async def list_submodel_descriptors(
    aas_identifier: str,
    limit: Optional[int] = Query(None),
    cursor: Optional[str] = Query(None),
    user: dict = Depends(require_view),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(DatabaseManager.get_session)
):
    try:
        shell_id = decode_identifier(aas_identifier)
        return SubmodelService.list_submodels(db, shell_id, tenant, limit=limit, cursor=cursor)
    except RegistryError as e:
        raise http_error(e)


@router.post("/shell-descriptors/{aas_identifier}/submodel-descriptors", status_code=201)
async def create_submodel_descriptor(
    aas_identifier: str,
    submodel: SubmodelDescriptorSchema,
    user: dict = Depends(require_add),
    db: Session = Depends(DatabaseManager.get_session)
):
    try:
        shell_id = decode_identifier(aas_identifier)
        return SubmodelService.create_submodel(db, shell_id, submodel)
    except RegistryError as e:
        raise http_error(e)


@router.get("/shell-descriptors/{aas_identifier}/submodel-descriptors/{submodel_identifier}")
async def get_submodel_descriptor(
    aas_identifier: str,
    submodel_identifier: str,
    user: dict = Depends(require_view),
    tenant: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(DatabaseManager.get_session)
):
    try:
        shell_id = decode_identifier(aas_identifier)
        submodel_id = decode_identifier(submodel_identifier)
        return SubmodelService.get_submodel(db, shell_id, submodel_id, tenant)
    except RegistryError as e:
        raise http_error(e)


@router.put("/shell-descriptors/{aas_identifier}/submodel-descriptors/{submodel_identifier}", status_code=204)
async def update_submodel_descriptor(
    aas_identifier: str,
    submodel_identifier: str,
    submodel: SubmodelDescriptorSchema,
    user: dict = Depends(require_update),
    db: Session = Depends(DatabaseManager.get_session)
):
    try:
        shell_id = decode_identifier(aas_identifier)
        submodel_id = decode_identifier(submodel_identifier)
        SubmodelService.update_submodel(db, shell_id, submodel_id, submodel)
    except RegistryError as e:
        raise http_error(e)
    return Response(status_code=204)


@router.delete("/shell-descriptors/{aas_identifier}/submodel-descriptors/{submodel_identifier}", status_code=204)
async def delete_submodel_descriptor(
    aas_identifier: str,
    submodel_identifier: str,
    user: dict = Depends(require_delete),
    db: Session = Depends(DatabaseManager.get_session)
):
    try:
        shell_id = decode_identifier(aas_identifier)
        submodel_id = decode_identifier(submodel_identifier)
        SubmodelService.delete_submodel(db, shell_id, submodel_id)
    except RegistryError as e:
        raise http_error(e)
    return Response(status_code=204)


# ==================== DESCRIPTION ====================

@router.get("/description")
async def get_description(user: dict = Depends(require_view)):
    return {"profiles": SERVICE_PROFILES}
