"""
Tests for request/response schema validation.
"""

import pytest
from pydantic import ValidationError

from registry.schemas import (
    ShellDescriptorRequest, ShellDescriptorResponse, SpecificAssetIdSchema, paged
)
from security.policy.visibility import IdentifyingAttribute


class TestSpecificAssetIdSchema:
    def test_grants_from_external_subject_id(self):
        schema = SpecificAssetIdSchema.model_validate({
            "name": "manufacturerPartId",
            "value": "X",
            "externalSubjectId": {"keys": [{"value": "BPNL_B"}, {"value": "PUBLIC_READABLE"}]},
        })
        assert schema.to_attribute().grants == frozenset({"BPNL_B", "PUBLIC_READABLE"})

    def test_no_external_subject_id_is_closed(self):
        schema = SpecificAssetIdSchema(name="n", value="v")
        assert schema.grants() is None
        assert schema.to_attribute().grants is None

    @pytest.mark.parametrize("payload", [
        {"name": "", "value": "v"},
        {"name": "n", "value": "  "},
        {"value": "v"},
        {"name": "n", "value": "v", "externalSubjectId": {"keys": []}},
        {"name": "n", "value": "v", "externalSubjectId": {"keys": [{"value": ""}]}},
    ])
    def test_malformed_rejected(self, payload):
        with pytest.raises(ValidationError):
            SpecificAssetIdSchema.model_validate(payload)

    def test_from_attribute_hides_grants_unless_asked(self):
        attribute = IdentifyingAttribute.create("n", "v", ["b", "a"])
        assert SpecificAssetIdSchema.from_attribute(attribute, include_grants=False).external_subject_id is None

        shown = SpecificAssetIdSchema.from_attribute(attribute, include_grants=True)
        assert shown.grants() == ["a", "b"]


class TestShellDescriptorRequest:
    def test_camel_case_aliases(self):
        request = ShellDescriptorRequest.model_validate({
            "id": "urn:shell:1",
            "idShort": "gearbox",
            "globalAssetId": "urn:asset:1",
            "assetKind": "Instance",
        })
        assert request.id_short == "gearbox"
        assert request.global_asset_id == "urn:asset:1"
        assert request.specific_asset_ids == []

    def test_unknown_asset_kind_rejected(self):
        with pytest.raises(ValidationError):
            ShellDescriptorRequest.model_validate({"id": "s", "assetKind": "Thing"})

    def test_duplicate_submodel_ids_rejected(self):
        with pytest.raises(ValidationError):
            ShellDescriptorRequest.model_validate({
                "id": "s",
                "submodelDescriptors": [{"id": "sm"}, {"id": "sm"}],
            })


class TestResponses:
    def test_absent_fields_are_omitted(self):
        body = ShellDescriptorResponse(id="s").to_json()
        assert body == {"id": "s", "specificAssetIds": [], "submodelDescriptors": []}

    def test_paged_envelope(self):
        assert paged(["a"], None) == {"paging_metadata": {}, "result": ["a"]}
        assert paged([], "YQ") == {"paging_metadata": {"cursor": "YQ"}, "result": []}
