import httpx
import pytest

import config
from services.tokens import GoogleTokenVerifier, TokenVerificationError, is_access_token

CLIENT_ID = "web-client.apps.googleusercontent.com"


def make_verifier(handler, client_id=CLIENT_ID):
    return GoogleTokenVerifier(client_id=client_id, client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_token_type_heuristic():
    assert is_access_token("ya29.a0AfH6SMC")
    assert is_access_token("opaquetokenwithoutdots")
    assert not is_access_token("header.payload.signature")


def test_id_token_claims_become_identity():
    seen = {}

    def handler(request):
        seen["url"] = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        seen["id_token"] = request.url.params.get("id_token")
        return httpx.Response(200, json={
            "aud": CLIENT_ID,
            "sub": "1098",
            "email": "ada@example.com",
            "email_verified": "true",
            "given_name": "Ada",
            "family_name": "Lovelace",
            "picture": "https://example.com/ada.png",
        })

    identity = make_verifier(handler).verify("aaa.bbb.ccc")

    assert seen == {"url": config.GOOGLE_ID_TOKENINFO_URL, "id_token": "aaa.bbb.ccc"}
    assert identity.email == "ada@example.com"
    assert identity.subject == "1098"
    assert identity.split_name() == ("Ada", "Lovelace")


def test_id_token_for_another_audience_is_rejected():
    def handler(request):
        return httpx.Response(200, json={"aud": "someone-else", "sub": "1", "email": "a@example.com"})

    with pytest.raises(TokenVerificationError):
        make_verifier(handler).verify("aaa.bbb.ccc")


def test_unverified_email_is_rejected():
    def handler(request):
        return httpx.Response(200, json={
            "aud": CLIENT_ID, "sub": "1", "email": "a@example.com", "email_verified": "false",
        })

    with pytest.raises(TokenVerificationError):
        make_verifier(handler).verify("aaa.bbb.ccc")


def test_id_token_without_email_is_rejected():
    def handler(request):
        return httpx.Response(200, json={"aud": CLIENT_ID, "sub": "1"})

    with pytest.raises(TokenVerificationError):
        make_verifier(handler).verify("aaa.bbb.ccc")


def test_access_token_is_enriched_from_userinfo():
    def handler(request):
        if request.url.path.endswith("/userinfo"):
            assert request.headers["Authorization"] == "Bearer ya29.token"
            return httpx.Response(200, json={"name": "Grace Hopper", "picture": "https://example.com/g.png"})
        assert request.url.params["access_token"] == "ya29.token"
        return httpx.Response(200, json={"email": "grace@example.com", "sub": "77", "aud": CLIENT_ID})

    identity = make_verifier(handler).verify("ya29.token")

    assert identity.email == "grace@example.com"
    assert identity.subject == "77"
    assert identity.split_name() == ("Grace", "Hopper")
    assert identity.picture == "https://example.com/g.png"


def test_access_token_survives_userinfo_outage():
    def handler(request):
        if request.url.path.endswith("/userinfo"):
            raise httpx.ConnectError("down")
        return httpx.Response(200, json={"email": "grace@example.com", "sub": "77"})

    identity = make_verifier(handler, client_id="").verify("ya29.token")

    assert identity.email == "grace@example.com"
    assert identity.name is None


def test_rejected_token_raises():
    verifier = make_verifier(lambda request: httpx.Response(400, json={"error": "invalid_token"}))

    with pytest.raises(TokenVerificationError) as exc:
        verifier.verify("ya29.expired")
    assert exc.value.status_code == 401


def test_network_failure_is_a_verification_failure():
    def handler(request):
        raise httpx.ConnectError("no route")

    with pytest.raises(TokenVerificationError):
        make_verifier(handler).verify("aaa.bbb.ccc")
