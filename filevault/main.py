"""
FileVault
- /login, /logout : cookie session for the operator
- /upload, /list, /download, /share, /unshare, /delete : authenticated file management
- /public/{token} : unauthenticated access to shared files
- The file index is rebuilt from the upload directory on every start
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from filevault.api.routes.auth import router as auth_router
from filevault.api.routes.files import router as files_router
from filevault.api.routes.public import router as public_router
from filevault.core.config import Settings, settings as default_settings
from filevault.core.logging import configure_logging
from filevault.services.blobstore import BlobStore
from filevault.services.registry import Registry

@asynccontextmanager
async def lifespan(app: FastAPI):
    store: BlobStore = app.state.store
    store.ensure_root()
    app.state.registry.load()
    yield

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.LOG_DIR, settings.LOG_LEVEL)

    app = FastAPI(title="FileVault", version="0.1.0", lifespan=lifespan)

    store = BlobStore(settings.UPLOAD_DIR, max_size=settings.MAX_UPLOAD_SIZE)
    app.state.settings = settings
    app.state.store = store
    app.state.registry = Registry(store)

    # APIs
    app.include_router(auth_router, tags=["auth"])
    app.include_router(files_router, tags=["files"])
    app.include_router(public_router, tags=["public"])

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app

app = create_app()
