from fastapi import APIRouter

from vectordb.api.routes import (
    api_keys,
    categories,
    collections,
    documents,
    integrations,
    public,
    shared_views,
    usage,
)

router = APIRouter()

router.include_router(documents.router, prefix="/documents", tags=["documents"])
router.include_router(categories.router, prefix="/categories", tags=["categories"])
router.include_router(collections.router, prefix="/collections", tags=["collections"])
router.include_router(shared_views.router, prefix="/shared-views", tags=["shared-views"])
router.include_router(api_keys.router, prefix="/api-keys", tags=["api-keys"])
router.include_router(usage.router, prefix="/usage", tags=["usage"])
router.include_router(integrations.router, prefix="/integrations", tags=["integrations"])

# Served without the API prefix
public_router = APIRouter()
public_router.include_router(public.router, prefix="/shared", tags=["public"])
