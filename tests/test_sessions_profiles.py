import json

import httpx
import pytest

from models import UserType
from services.errors import UpstreamError
from services.profiles import (
    HttpProfileStore,
    ProfileServiceUnavailable,
    SqliteProfileStore,
    evaluate_profile,
)
from services.sessions import LocalSessionIssuer, SessionClient


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


# Sessions

def test_session_client_wire_format():
    captured = {}

    def handler(request):
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(201, json={"token": "tok-123", "sessionId": "sess-1"})

    client = SessionClient("http://sessions.local/", client=mock_client(handler))
    grant = client.create("user-1", "10.0.0.1", "Firefox")

    assert captured == {
        "method": "POST",
        "path": "/sessions",
        "body": {"userId": "user-1", "ipAddress": "10.0.0.1", "deviceInfo": "Firefox"},
    }
    assert grant.token == "tok-123"
    assert grant.session_id == "sess-1"


def test_session_client_maps_failures_to_upstream_error():
    client = SessionClient("http://sessions.local", client=mock_client(lambda r: httpx.Response(503)))

    with pytest.raises(UpstreamError) as exc:
        client.create("user-1", None, None)
    assert exc.value.status_code == 502


def test_session_client_revoke():
    def handler(request):
        assert request.method == "DELETE"
        return httpx.Response(404 if request.url.path.endswith("/missing") else 204)

    client = SessionClient("http://sessions.local", client=mock_client(handler))

    assert client.revoke("sess-1") is True
    assert client.revoke("missing") is False


def test_local_sessions_are_unique_and_revocable():
    issuer = LocalSessionIssuer()
    first = issuer.create("user-1", "127.0.0.1", "pytest")
    second = issuer.create("user-1", "127.0.0.1", "pytest")

    assert first.token != second.token
    assert issuer.revoke(first.session_id) is True
    assert issuer.revoke(first.session_id) is False


# Profiles

@pytest.mark.parametrize("user_type, profile, missing", [
    (UserType.CUSTOMER, {"firstName": "A", "lastName": "B", "contactNumber": "1"}, []),
    (UserType.CUSTOMER, {"firstName": "A", "lastName": "B"}, ["basic profile information"]),
    (UserType.RESTAURANT, {"restaurantName": "R", "restaurantLicenseNumber": "L",
                           "cuisineTypeIds": ["x"], "restaurantTypeId": "t"}, []),
    (UserType.RESTAURANT, {"restaurantName": "R", "cuisineTypeIds": []}, ["restaurant details"]),
    (UserType.DRIVER, {"vehicleNumber": "AB-1234", "vehicleTypeId": "bike"}, []),
    (UserType.DRIVER, {"vehicleNumber": "AB-1234"}, ["vehicle information"]),
    (UserType.DRIVER, None, ["profile data"]),
    (UserType.PENDING, {"firstName": "A"}, ["account type"]),
])
def test_profile_completeness_rules(user_type, profile, missing):
    completion = evaluate_profile(user_type, profile)

    assert completion.is_complete == (missing == [])
    assert completion.missing_fields == missing


def test_sqlite_profile_store_merges_fields():
    store = SqliteProfileStore()
    store.save("user-1", "a@example.com", {"firstName": "Ada", "lastName": None})
    merged = store.save("user-1", "a@example.com", {"lastName": "Lovelace"})

    assert merged["firstName"] == "Ada"
    assert merged["lastName"] == "Lovelace"
    assert store.get_by_email("a@example.com")["id"] == "user-1"
    assert store.get("missing") is None


def test_http_profile_store_lookups():
    def handler(request):
        if request.url.path == "/users/email/a@example.com":
            return httpx.Response(200, json={"id": "user-1", "firstName": "Ada"})
        return httpx.Response(404)

    store = HttpProfileStore("http://users.local/users", client=mock_client(handler))

    assert store.get_by_email("a@example.com")["firstName"] == "Ada"
    assert store.get("unknown") is None


def test_http_profile_store_outage():
    def handler(request):
        raise httpx.ConnectError("refused")

    store = HttpProfileStore("http://users.local/users", client=mock_client(handler))

    with pytest.raises(ProfileServiceUnavailable):
        store.get_by_email("a@example.com")


def test_http_profile_store_rejects_non_json_bodies():
    def handler(request):
        return httpx.Response(200, text="<html>Bad gateway</html>", headers={"content-type": "text/html"})

    store = HttpProfileStore("http://users.local/users", client=mock_client(handler))

    with pytest.raises(ProfileServiceUnavailable):
        store.get_by_email("a@example.com")
    with pytest.raises(ProfileServiceUnavailable):
        store.save("user-1", "a@example.com", {"firstName": "Ada"})
