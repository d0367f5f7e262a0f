from typing import Optional

from fastapi import APIRouter, Query

from api.models import (
    AcceptDeliveryRequest,
    CreateDeliveryRequest,
    DeliveryResponse,
    UpdateDeliveryRequest,
)
from api.state import state
from models import Delivery
from services.deliveries import parse_status

router = APIRouter(prefix="/deliveries", tags=["Deliveries"])


def to_response(delivery: Delivery) -> DeliveryResponse:
    return DeliveryResponse(**delivery.model_dump(mode="json"))


@router.post("", response_model=DeliveryResponse, status_code=201)
async def create_delivery(payload: CreateDeliveryRequest):
    return to_response(state.delivery_service.create(payload.order_id))


@router.get("", response_model=list[DeliveryResponse])
async def list_deliveries(
    status: Optional[str] = None,
    driver_id: Optional[str] = Query(None, alias="driverId"),
    limit: int = 50,
    offset: int = 0,
):
    """List deliveries, e.g. ?status=PENDING for the open request board."""
    deliveries = state.delivery_service.find(
        status=parse_status(status) if status else None,
        driver_id=driver_id,
        limit=limit,
        offset=offset,
    )
    return [to_response(d) for d in deliveries]


@router.get("/driver/{driver_id}", response_model=list[DeliveryResponse])
async def list_driver_deliveries(driver_id: str):
    return [to_response(d) for d in state.delivery_service.list_for_driver(driver_id)]


@router.get("/{delivery_id}", response_model=DeliveryResponse)
async def get_delivery(delivery_id: str):
    return to_response(state.delivery_service.get(delivery_id))


@router.put("/{delivery_id}", response_model=DeliveryResponse)
async def update_delivery(delivery_id: str, payload: UpdateDeliveryRequest):
    """Move a delivery to a new status; illegal or concurrent moves answer 409."""
    delivery = state.delivery_service.transition(
        delivery_id, parse_status(payload.status), payload.driver_id
    )
    await state.order_service.delivery_updated(delivery)
    return to_response(delivery)


@router.post("/{delivery_id}/accept", response_model=DeliveryResponse)
async def accept_delivery(delivery_id: str, payload: AcceptDeliveryRequest):
    delivery = state.delivery_service.accept(delivery_id, payload.driver_id)
    await state.order_service.delivery_updated(delivery)
    return to_response(delivery)
