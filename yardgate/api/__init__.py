"""API routes package."""

from fastapi import APIRouter

from yardgate.api.routes import containers, gate, inventory, ocr

# Main API router
api_router = APIRouter(prefix="/api/v1")

# Include route modules
api_router.include_router(containers.router)
api_router.include_router(gate.router)
api_router.include_router(ocr.router)
api_router.include_router(inventory.router)
