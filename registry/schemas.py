"""
Pydantic schemas for registry API validation and serialization.

These schemas handle:
1. Request validation (what clients send); malformed specificAssetIds
   are rejected here, before anything reaches the policy core
2. Response serialization (camelCase JSON, absent fields omitted)
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Optional

from security.policy.visibility import IdentifyingAttribute


def _not_blank(v: str, field_name: str) -> str:
    if not v or not v.strip():
        raise ValueError(f"{field_name} must not be empty")
    return v


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ============ Shared value objects ============

class LangString(CamelModel):
    language: str = Field(..., min_length=1)
    text: str


class Key(CamelModel):
    type: str = Field("GlobalReference")
    value: str

    @field_validator('value')
    def validate_value(cls, v):
        return _not_blank(v, "key value")


class Reference(CamelModel):
    """
    AAS reference. As an externalSubjectId each key value is a tenant id,
    or the public wildcard.
    """
    type: str = Field("ExternalReference")
    keys: List[Key] = Field(..., min_length=1)


class SpecificAssetIdSchema(CamelModel):
    """
    Identifying attribute of a shell.

    Example:
        {
            "name": "manufacturerPartId",
            "value": "123-456",
            "externalSubjectId": {
                "type": "ExternalReference",
                "keys": [{"type": "GlobalReference", "value": "PUBLIC_READABLE"}]
            }
        }
    """
    name: str = Field(..., max_length=255)
    value: str = Field(..., max_length=2048)
    external_subject_id: Optional[Reference] = Field(None, alias="externalSubjectId")

    @field_validator('name')
    def validate_name(cls, v):
        return _not_blank(v, "name")

    @field_validator('value')
    def validate_value(cls, v):
        return _not_blank(v, "value")

    def grants(self) -> Optional[List[str]]:
        if self.external_subject_id is None:
            return None
        return [key.value for key in self.external_subject_id.keys]

    def to_attribute(self) -> IdentifyingAttribute:
        return IdentifyingAttribute.create(self.name, self.value, self.grants())

    @classmethod
    def from_attribute(cls, attribute: IdentifyingAttribute, include_grants: bool) -> "SpecificAssetIdSchema":
        reference = None
        if include_grants and attribute.grants is not None:
            reference = Reference(keys=[Key(value=tenant) for tenant in sorted(attribute.grants)])
        return cls(name=attribute.name, value=attribute.value, external_subject_id=reference)


class SubmodelDescriptorSchema(CamelModel):
    id: str = Field(..., min_length=1, max_length=2048)
    id_short: Optional[str] = Field(None, alias="idShort", max_length=128)
    description: Optional[List[LangString]] = None
    semantic_id: Optional[Reference] = Field(None, alias="semanticId")
    endpoints: List[Dict[str, Any]] = Field(default_factory=list)


# ============ Request Schemas ============

class ShellDescriptorRequest(CamelModel):
    """
    Request to create or replace a shell descriptor.

    Example:
        {
            "id": "urn:uuid:1e3b5c1a-...",
            "idShort": "gearbox-4711",
            "globalAssetId": "urn:uuid:...",
            "specificAssetIds": [
                {"name": "manufacturerPartId", "value": "123-456"}
            ],
            "submodelDescriptors": []
        }
    """
    id: str = Field(..., min_length=1, max_length=2048)
    id_short: Optional[str] = Field(None, alias="idShort", max_length=128)
    description: Optional[List[LangString]] = None
    display_name: Optional[List[LangString]] = Field(None, alias="displayName")
    global_asset_id: Optional[str] = Field(None, alias="globalAssetId", max_length=2048)
    asset_kind: Optional[str] = Field(None, alias="assetKind", pattern="^(Instance|Type|NotApplicable)$")
    asset_type: Optional[str] = Field(None, alias="assetType", max_length=2048)
    specific_asset_ids: List[SpecificAssetIdSchema] = Field(default_factory=list, alias="specificAssetIds")
    submodel_descriptors: List[SubmodelDescriptorSchema] = Field(default_factory=list, alias="submodelDescriptors")

    @field_validator('submodel_descriptors')
    def validate_unique_submodels(cls, v):
        ids = [s.id for s in v]
        if len(ids) != len(set(ids)):
            raise ValueError("submodelDescriptors contain duplicate ids")
        return v


# ============ Response Schemas ============

class ShellDescriptorResponse(CamelModel):
    """
    Projected shell descriptor. Fields a RESTRICTED accessor may not see
    stay None and are dropped on serialization.
    """
    id: str
    id_short: Optional[str] = Field(None, alias="idShort")
    description: Optional[List[LangString]] = None
    display_name: Optional[List[LangString]] = Field(None, alias="displayName")
    global_asset_id: Optional[str] = Field(None, alias="globalAssetId")
    asset_kind: Optional[str] = Field(None, alias="assetKind")
    asset_type: Optional[str] = Field(None, alias="assetType")
    specific_asset_ids: List[SpecificAssetIdSchema] = Field(default_factory=list, alias="specificAssetIds")
    submodel_descriptors: List[SubmodelDescriptorSchema] = Field(default_factory=list, alias="submodelDescriptors")

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PagingMetadata(CamelModel):
    cursor: Optional[str] = None


def paged(result: List[Any], cursor: Optional[str]) -> Dict[str, Any]:
    """Wrap a result page the way every list endpoint returns it"""
    return {
        "paging_metadata": PagingMetadata(cursor=cursor).model_dump(exclude_none=True),
        "result": result,
    }
