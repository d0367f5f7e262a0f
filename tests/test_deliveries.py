import pytest

from models import DeliveryStatus
from services.deliveries import (
    DeliveryConflictError,
    DeliveryService,
    IllegalTransitionError,
    TRANSITIONS,
    can_transition,
)
from services.errors import BadRequest, Conflict, NotFound


@pytest.fixture
def service():
    return DeliveryService()


def test_forward_path_stamps_each_stage(service):
    delivery = service.create("order-1")
    assert delivery.status == DeliveryStatus.PENDING

    accepted = service.accept(delivery.delivery_id, "driver-1")
    picked_up = service.transition(delivery.delivery_id, DeliveryStatus.IN_PROGRESS, "driver-1")
    delivered = service.transition(delivery.delivery_id, DeliveryStatus.DELIVERED)

    assert accepted.driver_id == "driver-1"
    assert accepted.accepted_at is not None
    assert picked_up.picked_up_at >= accepted.accepted_at
    assert delivered.status == DeliveryStatus.DELIVERED
    assert delivered.delivered_at >= picked_up.picked_up_at
    assert delivered.cancelled_at is None


def test_terminal_states_have_no_exits():
    assert TRANSITIONS[DeliveryStatus.DELIVERED] == set()
    assert TRANSITIONS[DeliveryStatus.CANCELLED] == set()
    assert not can_transition(DeliveryStatus.PENDING, DeliveryStatus.DELIVERED)


def test_delivered_cannot_go_back_to_pending(service):
    delivery = service.create("order-1")
    service.accept(delivery.delivery_id, "driver-1")
    service.transition(delivery.delivery_id, DeliveryStatus.IN_PROGRESS)
    service.transition(delivery.delivery_id, DeliveryStatus.DELIVERED)

    with pytest.raises(IllegalTransitionError) as exc:
        service.transition(delivery.delivery_id, DeliveryStatus.PENDING)
    assert exc.value.status_code == 409
    assert service.get(delivery.delivery_id).status == DeliveryStatus.DELIVERED


def test_skipping_a_stage_is_illegal(service):
    delivery = service.create("order-1")

    with pytest.raises(IllegalTransitionError):
        service.transition(delivery.delivery_id, DeliveryStatus.IN_PROGRESS)


def test_second_driver_cannot_take_accepted_delivery(service):
    delivery = service.create("order-1")
    service.accept(delivery.delivery_id, "driver-1")

    with pytest.raises(DeliveryConflictError):
        service.accept(delivery.delivery_id, "driver-2")
    with pytest.raises(DeliveryConflictError):
        service.transition(delivery.delivery_id, DeliveryStatus.IN_PROGRESS, "driver-2")
    assert service.get(delivery.delivery_id).driver_id == "driver-1"


def test_same_driver_accepting_again_is_a_no_op(service):
    delivery = service.create("order-1")
    first = service.accept(delivery.delivery_id, "driver-1")
    again = service.accept(delivery.delivery_id, "driver-1")

    assert again == first


def test_accept_requires_driver(service):
    delivery = service.create("order-1")

    with pytest.raises(BadRequest):
        service.transition(delivery.delivery_id, DeliveryStatus.ACCEPTED)


def test_stale_read_loses_compare_and_set(service):
    delivery = service.create("order-1")
    stale = service.get(delivery.delivery_id)
    service.accept(delivery.delivery_id, "driver-1")

    class StaleReadService(DeliveryService):
        """Sees the row as it was before the other driver's write landed."""

        def __init__(self):
            self.reads = 0

        def get(self, delivery_id):
            self.reads += 1
            return stale if self.reads == 1 else super().get(delivery_id)

    with pytest.raises(DeliveryConflictError) as exc:
        StaleReadService().accept(delivery.delivery_id, "driver-2")

    assert "ACCEPTED" in exc.value.message
    assert service.get(delivery.delivery_id).driver_id == "driver-1"


def test_one_delivery_per_order(service):
    service.create("order-1")

    with pytest.raises(Conflict):
        service.create("order-1")


def test_list_filters(service):
    a = service.create("order-a")
    service.create("order-b")
    service.accept(a.delivery_id, "driver-1")

    assert [d.order_id for d in service.find(status=DeliveryStatus.PENDING)] == ["order-b"]
    assert [d.order_id for d in service.list_for_driver("driver-1")] == ["order-a"]
    with pytest.raises(NotFound):
        service.get("missing")


# =============================================================================
# HTTP
# =============================================================================

def test_delivery_endpoints(client):
    created = client.post("/deliveries", json={"orderId": "order-1"})
    assert created.status_code == 201
    delivery_id = created.json()["deliveryId"]

    for status in ["ACCEPTED", "IN_PROGRESS", "DELIVERED"]:
        response = client.put(f"/deliveries/{delivery_id}", json={"status": status, "driverId": "driver-1"})
        assert response.status_code == 200
        assert response.json()["status"] == status

    back = client.put(f"/deliveries/{delivery_id}", json={"status": "PENDING"})
    assert back.status_code == 409
    assert back.json() == {"error": "Cannot move delivery from DELIVERED to PENDING"}

    assert client.get(f"/deliveries/{delivery_id}").json()["driverId"] == "driver-1"
    assert len(client.get("/deliveries/driver/driver-1").json()) == 1
    assert client.get("/deliveries", params={"status": "delivered"}).json()[0]["deliveryId"] == delivery_id


def test_competing_accepts_over_http(client):
    delivery_id = client.post("/deliveries", json={"orderId": "order-1"}).json()["deliveryId"]

    first = client.post(f"/deliveries/{delivery_id}/accept", json={"driverId": "driver-1"})
    second = client.post(f"/deliveries/{delivery_id}/accept", json={"driverId": "driver-2"})

    assert first.status_code == 200
    assert second.status_code == 409


def test_delivery_errors(client):
    assert client.get("/deliveries/missing").status_code == 404
    assert client.get("/deliveries", params={"status": "LOST"}).status_code == 400
    assert client.post("/deliveries", json={}).status_code == 400

    client.post("/deliveries", json={"orderId": "order-1"})
    assert client.post("/deliveries", json={"orderId": "order-1"}).status_code == 409
