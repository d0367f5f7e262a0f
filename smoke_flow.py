#!/usr/bin/env python3
"""
Walk a running API through sign-up, an order and its delivery.

    uvicorn api.main:app --reload --port 8000
    python smoke_flow.py
"""

import uuid
import requests

API_URL = "http://localhost:8000"


def step(title: str):
    print(f"\n{title}")


def run_flow():
    print("🧪 Food delivery smoke flow\n")
    print("=" * 60)

    step("1. Checking API connectivity...")
    try:
        response = requests.get(f"{API_URL}/", timeout=5)
        response.raise_for_status()
        print(f"   ✅ API is running at {API_URL}")
    except requests.exceptions.ConnectionError:
        print("   ❌ Cannot connect to API. Make sure it's running:")
        print("      uvicorn api.main:app --reload --port 8000")
        return

    suffix = uuid.uuid4().hex[:8]
    customer_email = f"customer-{suffix}@example.com"

    step("2. Registering a customer and a driver...")
    customer = requests.post(f"{API_URL}/auth/sign-up", json={
        "email": customer_email,
        "password": "s3cret-pass",
        "userType": "CUSTOMER",
        "firstName": "Smoke",
        "lastName": "Test",
        "contactNumber": "+94770000000",
    }, timeout=5)
    driver = requests.post(f"{API_URL}/auth/sign-up", json={
        "email": f"driver-{suffix}@example.com",
        "password": "s3cret-pass",
        "userType": "DRIVER",
    }, timeout=5)
    if customer.status_code != 201 or driver.status_code != 201:
        print(f"   ❌ Sign-up failed: {customer.status_code} {driver.status_code}")
        return
    customer_id = customer.json()["userId"]
    driver_id = driver.json()["userId"]
    print(f"   ✅ Customer {customer_id[:8]}... / driver {driver_id[:8]}...")

    step("3. Signing in...")
    session = requests.post(f"{API_URL}/auth/sign-in", json={
        "email": customer_email,
        "password": "s3cret-pass",
    }, timeout=5)
    print(f"   {'✅' if session.ok else '❌'} {session.status_code} {session.json().get('message', session.json())}")

    step("4. Placing an order...")
    order = requests.post(f"{API_URL}/orders", json={
        "customerId": customer_id,
        "restaurantId": "restaurant-1",
        "total": 24.50,
        "deliveryFee": 2.49,
        "customerEmail": customer_email,
    }, timeout=10)
    if order.status_code != 201:
        print(f"   ❌ Failed to place order: {order.status_code} {order.text}")
        return
    delivery_id = order.json()["deliveryId"]
    print(f"   ✅ Order {order.json()['orderId'][:8]}... with delivery {delivery_id[:8]}...")

    step("5. Driving the delivery through its states...")
    for status in ["ACCEPTED", "IN_PROGRESS", "DELIVERED"]:
        response = requests.put(f"{API_URL}/deliveries/{delivery_id}", json={
            "status": status,
            "driverId": driver_id,
        }, timeout=10)
        print(f"   {status:12} -> {response.status_code}")

    step("6. Trying to reopen a delivered delivery (expect 409)...")
    response = requests.put(f"{API_URL}/deliveries/{delivery_id}", json={"status": "PENDING"}, timeout=5)
    print(f"   {'✅' if response.status_code == 409 else '❌'} {response.status_code} {response.json()}")

    step("7. Final order state...")
    final = requests.get(f"{API_URL}/orders/{order.json()['orderId']}", timeout=5).json()
    print(f"   Order status: {final['status']}")

    stats = requests.get(f"{API_URL}/stats", timeout=5).json()
    print("\n" + "=" * 60)
    print(f"📈 {stats}")


if __name__ == "__main__":
    run_flow()
