from fastapi import APIRouter, Depends

from filevault.api.deps import get_registry, http_error
from filevault.api.routes.files import attachment_response
from filevault.core.errors import FileVaultError
from filevault.services.registry import Registry

router = APIRouter()

# No auth: possession of a live token is the only check.
@router.get("/public/{token}")
def public_file(token: str, registry: Registry = Depends(get_registry)):
    try:
        record, fh = registry.open_public(token)
    except FileVaultError as e:
        raise http_error(e)
    return attachment_response(record, fh)
