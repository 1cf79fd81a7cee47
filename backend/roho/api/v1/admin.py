"""
Admin endpoints for rider management
All routes require the X-Admin-Secret header
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from roho.api.deps import get_rider_registry
from roho.core.security import verify_admin_secret
from roho.schemas.rider import RiderCreate, RiderListResponse, RiderRegistered
from roho.services.delivery.riders import RiderAlreadyRegistered, RiderRegistry

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_admin_secret)])


@router.post("/riders", response_model=RiderRegistered, status_code=status.HTTP_201_CREATED)
async def register_rider(
    request: RiderCreate,
    registry: RiderRegistry = Depends(get_rider_registry),
):
    """Register a rider so their messages reach the rider command bot"""
    try:
        rider = await registry.register(request)
    except RiderAlreadyRegistered as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return RiderRegistered(
        message=f'Rider "{rider.name}" registered successfully',
        phone=rider.phone,
    )


@router.get("/riders", response_model=RiderListResponse)
async def list_riders(registry: RiderRegistry = Depends(get_rider_registry)):
    riders = await registry.list_riders()
    return RiderListResponse(count=len(riders), riders=riders)
