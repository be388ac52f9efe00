"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from catalog_engine.api.attributes import router as attributes_router
from catalog_engine.api.categories import router as categories_router
from catalog_engine.api.exports import router as exports_router
from catalog_engine.api.health import router as health_router
from catalog_engine.api.imports import router as imports_router

__all__ = [
    "attributes_router",
    "categories_router",
    "exports_router",
    "health_router",
    "imports_router",
]
