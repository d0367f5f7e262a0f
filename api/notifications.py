import json
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from api.models import (
    AllocateDeliveryRequest,
    ApplicationStatusRequest,
    BroadcastRequest,
    BroadcastResponse,
    CreateOrderRequest,
    DriverApplicationRequest,
    DriverApplicationResponse,
    OrderResponse,
    UpdateOrderStatusRequest,
)
from api.state import state
from models import DriverApplication, Order

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Notifications"])


def order_response(order: Order, delivery_id: Optional[str] = None) -> OrderResponse:
    return OrderResponse(**order.model_dump(mode="json"), delivery_id=delivery_id)


def application_response(application: DriverApplication) -> DriverApplicationResponse:
    return DriverApplicationResponse(**application.model_dump(mode="json"))


# =============================================================================
# Orders
# =============================================================================

@router.post("/orders", response_model=OrderResponse, status_code=201, tags=["Orders"])
async def add_order(payload: CreateOrderRequest):
    """Place an order, open its delivery and tell the customer."""
    order, delivery = await state.order_service.add_order(
        customer_id=payload.customer_id,
        restaurant_id=payload.restaurant_id,
        total=payload.total,
        delivery_fee=payload.delivery_fee,
        customer_email=payload.customer_email,
        customer_phone=payload.customer_phone,
    )
    return order_response(order, delivery.delivery_id)


@router.get("/orders", response_model=list[OrderResponse], tags=["Orders"])
async def list_orders(
    customer_id: Optional[str] = Query(None, alias="customerId"),
    limit: int = 20,
    offset: int = 0,
):
    return [order_response(o) for o in state.order_service.find(customer_id, limit, offset)]


@router.get("/orders/{order_id}", response_model=OrderResponse, tags=["Orders"])
async def get_order(order_id: str):
    order = state.order_service.get(order_id)
    delivery = state.delivery_service.get_for_order(order_id)
    return order_response(order, delivery.delivery_id if delivery else None)


@router.put("/orders/{order_id}/status", response_model=OrderResponse, tags=["Orders"])
async def update_order_status(order_id: str, payload: UpdateOrderStatusRequest):
    order = await state.order_service.update_status(order_id, payload.status)
    return order_response(order)


# =============================================================================
# Drivers
# =============================================================================

@router.post("/drivers/allocate", tags=["Drivers"])
async def allocate_delivery(payload: AllocateDeliveryRequest):
    return await state.driver_service.allocate(payload.delivery_id, payload.driver_id)


@router.post("/drivers/apply", response_model=DriverApplicationResponse, status_code=201, tags=["Drivers"])
async def apply_to_become_driver(payload: DriverApplicationRequest):
    application = state.driver_service.apply(
        user_id=payload.user_id,
        email=payload.email,
        phone=payload.phone,
        vehicle_type=payload.vehicle_type,
        vehicle_number=payload.vehicle_number,
        license_number=payload.license_number,
    )
    return application_response(application)


@router.put("/drivers/application/{user_id}/status", response_model=DriverApplicationResponse, tags=["Drivers"])
async def update_application_status(user_id: str, payload: ApplicationStatusRequest):
    application = await state.driver_service.update_application_status(user_id, payload.status)
    return application_response(application)


# =============================================================================
# Email broadcast & live push
# =============================================================================

@router.post("/broadcast-emails", response_model=BroadcastResponse)
async def broadcast_emails(payload: BroadcastRequest):
    result = await state.notifier.broadcast(
        recipients=[r.model_dump() for r in payload.recipients],
        subject=payload.subject,
        template=payload.template,
        shared=payload.variables,
    )
    return BroadcastResponse(**result)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Clients send {"type": "register", "userId": ...} once connected and then
    receive order, delivery and driver-request events.
    """
    await websocket.accept()
    connections = state.connections
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                data = None
            if not isinstance(data, dict):
                logger.warning("Ignoring malformed WebSocket message")
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            if data.get("type") == "register" and data.get("userId"):
                connections.register(str(data["userId"]), websocket)
                await websocket.send_json({"type": "registered", "userId": str(data["userId"])})
            elif data.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
    finally:
        connections.deregister(websocket)
