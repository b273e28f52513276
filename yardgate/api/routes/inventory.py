"""
Inventory API routes.

Tracking lines derived from container records: one line per yard
exit and one per confirmed return.
"""

from fastapi import APIRouter
from pydantic import BaseModel

from yardgate.api.deps import ApiKeyAuth, QueryService, RateLimited

router = APIRouter(prefix="/inventory", tags=["inventory"])


class InventoryItemResponse(BaseModel):
    """Response model for an inventory line."""

    container_id: int | None
    container_number: str
    armador: str
    item_type: str
    status: str
    details: str


class InventoryResponse(BaseModel):
    """Response for the derived inventory."""

    items: list[InventoryItemResponse]
    count: int


@router.get(
    "",
    response_model=InventoryResponse,
    summary="Derived inventory",
)
async def get_inventory(
    service: QueryService,
    _: ApiKeyAuth,
    __: RateLimited,
) -> InventoryResponse:
    """Inventory lines for every container with a recorded exit or return."""
    items = await service.inventory()

    return InventoryResponse(
        items=[
            InventoryItemResponse(
                container_id=item.container_id,
                container_number=item.container_number,
                armador=item.armador,
                item_type=item.item_type,
                status=item.status,
                details=item.details,
            )
            for item in items
        ],
        count=len(items),
    )
