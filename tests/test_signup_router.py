"""Tests for POST /functions/v1/verification-code-handler."""

import uuid

import pytest

from planora_api.core.errors import DeliveryError
from planora_api.middleware.rate_limit import limiter

URL = "/functions/v1/verification-code-handler"
EMAIL = "traveller@example.com"
PASSWORD = "SecurePass123"


def _initiate(email=EMAIL, password=PASSWORD) -> dict:
    return {"action": "initiate-signup", "payload": {"email": email, "password": password}}


def _complete(code: str, email=EMAIL) -> dict:
    return {"action": "complete-signup", "payload": {"email": email, "code": code}}


class TestCors:
    async def test_preflight(self, client):
        response = await client.options(URL)

        assert response.status_code == 200
        assert response.text == "ok"
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["access-control-allow-headers"] == (
            "authorization, x-client-info, apikey, content-type"
        )

    async def test_error_responses_carry_cors_headers(self, client):
        response = await client.post(URL, json={"action": "nope"})

        assert response.status_code == 400
        assert response.headers["access-control-allow-origin"] == "*"


class TestInitiateSignup:
    async def test_success(self, client, notifier):
        response = await client.post(URL, json=_initiate())

        assert response.status_code == 200
        assert response.json() == {"message": "Signup initiated. Please check your email."}
        assert response.headers["access-control-allow-origin"] == "*"
        assert notifier.sent[0][0] == EMAIL

    async def test_missing_password(self, client, notifier):
        response = await client.post(URL, json=_initiate(password=None))

        assert response.status_code == 400
        assert response.json() == {"error": "Email and password are required."}
        assert notifier.sent == []

    async def test_missing_payload(self, client):
        response = await client.post(URL, json={"action": "initiate-signup"})

        assert response.status_code == 400
        assert response.json() == {"error": "Email and password are required."}

    async def test_delivery_failure(self, client, notifier):
        notifier.fail_on["send_verification_code"] = DeliveryError(
            "Email service is not configured."
        )

        response = await client.post(URL, json=_initiate())

        assert response.status_code == 400
        assert response.json() == {"error": "Email service is not configured."}


class TestCompleteSignup:
    async def test_full_signup(self, client, notifier, identity):
        await client.post(URL, json=_initiate())
        code = notifier.last_code_for(EMAIL)

        response = await client.post(URL, json=_complete(code))

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Signup successful!"
        assert uuid.UUID(body["userId"]) in identity.users

    async def test_invalid_code(self, client, notifier):
        await client.post(URL, json=_initiate())
        code = notifier.last_code_for(EMAIL)
        wrong = f"{(int(code) + 1) % 1_000_000:06d}"

        response = await client.post(URL, json=_complete(wrong))

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid verification code."}

    async def test_reused_code(self, client, notifier):
        await client.post(URL, json=_initiate())
        code = notifier.last_code_for(EMAIL)
        await client.post(URL, json=_complete(code))

        response = await client.post(URL, json=_complete(code))

        assert response.status_code == 400
        assert response.json() == {"error": "Verification code has already been used."}

    async def test_expired_code(self, client, notifier, clock):
        await client.post(URL, json=_initiate())
        code = notifier.last_code_for(EMAIL)
        clock.advance(minutes=16)

        response = await client.post(URL, json=_complete(code))

        assert response.status_code == 400
        assert response.json() == {"error": "Verification code has expired."}

    async def test_missing_role(self, client, notifier, datastore):
        await client.post(URL, json=_initiate())
        code = notifier.last_code_for(EMAIL)
        datastore.roles.clear()

        response = await client.post(URL, json=_complete(code))

        assert response.status_code == 400
        assert response.json() == {"error": "Default user role not found."}


class TestMalformedRequests:
    @pytest.mark.parametrize(
        "body",
        [
            {"action": "delete-everything", "payload": {}},
            {"payload": {"email": EMAIL}},
            ["initiate-signup"],
            "initiate-signup",
        ],
    )
    async def test_unknown_action(self, client, body):
        response = await client.post(URL, json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid action"}

    async def test_body_not_json(self, client):
        response = await client.post(
            URL, content=b"{not json", headers={"content-type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid action"}

    async def test_wrongly_typed_payload(self, client):
        response = await client.post(
            URL, json={"action": "complete-signup", "payload": {"email": EMAIL, "code": 123456}}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request payload."}


class TestCorrelationId:
    async def test_echoes_supplied_id(self, client):
        response = await client.options(URL, headers={"X-Correlation-ID": "req-42"})

        assert response.headers["x-correlation-id"] == "req-42"

    async def test_generates_id(self, client):
        response = await client.options(URL)

        assert uuid.UUID(response.headers["x-correlation-id"])


class TestRateLimiting:
    @pytest.fixture(autouse=True)
    def _enable_rate_limiting(self):
        """Temporarily enable rate limiting for these tests."""
        limiter.enabled = True
        limiter.reset()
        yield
        limiter.enabled = False

    async def test_signup_rate_limit_triggers_429(self, client):
        statuses = []
        for _ in range(11):
            response = await client.post(URL, json=_initiate())
            statuses.append(response.status_code)

        assert statuses[:10] == [200] * 10
        assert statuses[10] == 429

    async def test_rate_limit_body_uses_error_shape(self, client):
        for _ in range(11):
            response = await client.post(URL, json=_initiate())

        assert response.status_code == 429
        assert "Rate limit exceeded" in response.json()["error"]
        assert response.headers["access-control-allow-origin"] == "*"
