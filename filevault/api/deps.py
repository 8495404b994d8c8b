# filevault/api/deps.py
import logging

from fastapi import HTTPException, Request

from filevault.core.config import Settings
from filevault.core.errors import FileVaultError, StorageError
from filevault.services.registry import Registry

AUTH_COOKIE_VALUE = "authenticated"

def get_settings(request: Request) -> Settings:
    return request.app.state.settings

def get_registry(request: Request) -> Registry:
    return request.app.state.registry

def require_auth(request: Request):
    name = get_settings(request).AUTH_COOKIE_NAME
    if request.cookies.get(name) != AUTH_COOKIE_VALUE:
        raise HTTPException(status_code=401, detail="Unauthorized")

def http_error(e: FileVaultError) -> HTTPException:
    """Translate a service error into the response the client sees."""
    if isinstance(e, StorageError):
        logging.exception("Storage failure: %s", e.message)
    return HTTPException(status_code=e.status_code, detail=e.message)
