"""
Utility functions for the registry API.

Handles:
- base64url identifiers in paths (padding optional)
- base64url-encoded JSON lookup query attributes
- opaque paging cursors
- mapping domain errors to HTTP status codes
- resolving the accessor tenant of a request
"""

import base64
import binascii
import json
from typing import List, Optional

import logging
from fastapi import HTTPException, Request
from pydantic import ValidationError

from registry.config import get_settings
from registry.schemas import SpecificAssetIdSchema
from security.policy.exceptions import (
    ConflictError, InvalidInputError, NotFoundError, RegistryError
)
from security.policy.tenancy import TenantContext

logger = logging.getLogger(__name__)


def _b64url_decode(encoded: str) -> bytes:
    padded = encoded + "=" * (-len(encoded) % 4)
    return base64.b64decode(padded, altchars=b"-_", validate=True)


def encode_identifier(identifier: str) -> str:
    """
    Encode an identifier for use in a URL path.

    Example:
        >>> encode_identifier("urn:uuid:abc")
        'dXJuOnV1aWQ6YWJj'
    """
    return base64.urlsafe_b64encode(identifier.encode("utf-8")).decode("ascii").rstrip("=")


def decode_identifier(encoded: str) -> str:
    """
    Decode a base64url path identifier.

    Raises:
        InvalidInputError: If the value is not valid base64url UTF-8
    """
    try:
        decoded = _b64url_decode(encoded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        logger.debug(f"Rejected identifier that is not base64url: {encoded!r}")
        raise InvalidInputError("Identifier must be base64url encoded")

    if not decoded:
        raise InvalidInputError("Identifier must not be empty")
    return decoded


def decode_asset_ids(encoded_values: Optional[List[str]]) -> List[SpecificAssetIdSchema]:
    """
    Decode repeated `assetIds` query parameters.

    Each value is a base64url-encoded JSON object with `name` and `value`.
    An externalSubjectId, if present, is parsed but plays no part in matching.

    Raises:
        InvalidInputError: Nothing given, or a value fails to decode/validate
    """
    if not encoded_values:
        raise InvalidInputError("At least one assetIds query parameter is required")

    attributes = []
    for encoded in encoded_values:
        try:
            payload = json.loads(_b64url_decode(encoded).decode("utf-8"))
            attributes.append(SpecificAssetIdSchema.model_validate(payload))
        except (binascii.Error, UnicodeDecodeError, ValueError, ValidationError) as e:
            # json.JSONDecodeError is a ValueError
            logger.debug(f"Rejected assetIds parameter: {e}")
            raise InvalidInputError("assetIds must be base64url encoded specificAssetId JSON")
    return attributes


def encode_cursor(last_id: str) -> str:
    return encode_identifier(last_id)


def decode_cursor(cursor: Optional[str]) -> Optional[str]:
    if cursor is None or cursor == "":
        return None
    return decode_identifier(cursor)


def http_error(error: RegistryError) -> HTTPException:
    """Translate a domain error raised by the service layer"""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ConflictError):
        return HTTPException(status_code=409, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))


def get_tenant_context(request: Request) -> TenantContext:
    """FastAPI dependency: accessor tenant from the configured header"""
    header_name = get_settings().tenancy.tenant_header
    return TenantContext.from_headers(request.headers, header_name)
