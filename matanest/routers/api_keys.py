from fastapi import APIRouter, Depends, Response
from typing import List
import logging

from matanest.storage.api_keys import ApiKeyRing, mask_key
from matanest.dependencies.dependencies import get_api_key_ring
from matanest.media_service.models import ApiKey, ApiKeyCreate, ApiKeyItem
from matanest.exceptions import ApiKeyNotFoundException, InvalidApiKeyException

log = logging.getLogger(__name__)

# Keys listed here are for display only; generation uses the API_KEY setting.
router = APIRouter(
    prefix="/api-keys",
    tags=["api-keys"]
)

def to_item(api_key: ApiKey) -> ApiKeyItem:
    return ApiKeyItem(
        id=api_key.id,
        masked_key=mask_key(api_key.key),
        is_active=api_key.is_active,
        usage=api_key.usage,
    )

@router.get("", response_model=List[ApiKeyItem])
def list_api_keys(keys: ApiKeyRing = Depends(get_api_key_ring)):
    return [to_item(k) for k in keys.list()]

@router.post("", response_model=ApiKeyItem, status_code=201)
def add_api_key(body: ApiKeyCreate, keys: ApiKeyRing = Depends(get_api_key_ring)):
    key = body.key.strip()
    if not key:
        raise InvalidApiKeyException("API key must not be empty.")
    return to_item(keys.add(key))

@router.delete("/{key_id}", status_code=204)
def remove_api_key(key_id: str, keys: ApiKeyRing = Depends(get_api_key_ring)):
    if keys.remove(key_id) is None:
        raise ApiKeyNotFoundException(key_id)
    return Response(status_code=204)
