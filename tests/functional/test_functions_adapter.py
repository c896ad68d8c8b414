import json

import httpx
import pytest

from backend import functions
from backend.payments.provider import PaymentProviderError
from backend.utils.csrf import CsrfService


@pytest.fixture(autouse=True)
def _fixed_csrf_service(monkeypatch):
    monkeypatch.setattr(functions, "_csrf_service", CsrfService("functions-test-secret"))


def _token():
    response = functions.csrf_token({"httpMethod": "GET"})
    return json.loads(response["body"])["token"]


def _post(payload, token=None, header="X-CSRF-Token"):
    headers = {header: token} if token else {}
    return {"httpMethod": "POST", "headers": headers, "body": json.dumps(payload)}


def test_csrf_token_handler():
    response = functions.csrf_token({"httpMethod": "GET"})
    assert response["statusCode"] == 200
    assert functions.get_csrf_service().validate_token(json.loads(response["body"])["token"])
    assert response["headers"]["Access-Control-Allow-Credentials"] == "true"


def test_preflight_and_wrong_method():
    assert functions.process_refund({"httpMethod": "OPTIONS"})["statusCode"] == 200
    response = functions.process_refund({"httpMethod": "GET"})
    assert response["statusCode"] == 405
    assert json.loads(response["body"]) == {"error": "Method not allowed"}


def test_checkout_handler(fake_provider):
    event = _post({"amount": 49.99, "ticketId": "T1", "orderTitle": "Widget"}, token=_token())

    response = functions.create_checkout_session(event, provider=fake_provider)

    assert response["statusCode"] == 200
    assert json.loads(response["body"])["sessionId"] == "cs_test_123"
    assert fake_provider.last("create_session")["line_items"][0]["price_data"]["unit_amount"] == 4999


def test_checkout_handler_without_csrf(fake_provider):
    response = functions.create_checkout_session(_post({"amount": 10, "ticketId": "T1", "orderTitle": "W"}), provider=fake_provider)
    assert response["statusCode"] == 403
    assert json.loads(response["body"])["code"] == "CSRF_INVALID"
    assert fake_provider.count() == 0


def test_headers_are_case_insensitive(fake_provider):
    event = _post({"amount": 10, "ticketId": "T1", "orderTitle": "W"}, token=_token(), header="x-csrf-token")
    assert functions.create_checkout_session(event, provider=fake_provider)["statusCode"] == 200


def test_refund_handler_matches_server_behaviour(fake_provider):
    event = _post({"paymentIntentId": "pi_123", "amount": 20.0, "reason": "wrong size"}, token=_token())

    response = functions.process_refund(event, provider=fake_provider)

    assert response["statusCode"] == 200
    assert json.loads(response["body"]) == {"success": True, "refundId": "re_test_1", "status": "succeeded", "amount": 20.0}
    assert fake_provider.last("create_refund")["reason"] == "requested_by_customer"


def test_refund_handler_invalid_amount(fake_provider):
    event = _post({"paymentIntentId": "pi_123", "amount": 0}, token=_token())
    response = functions.process_refund(event, provider=fake_provider)
    assert response["statusCode"] == 400
    assert json.loads(response["body"])["code"] == "INVALID_AMOUNT"
    assert fake_provider.count() == 0


def test_refund_handler_provider_failure(fake_provider):
    fake_provider.fail["create_refund"] = PaymentProviderError("declined", {"code": "charge_disputed"})
    response = functions.process_refund(_post({"paymentIntentId": "pi_1", "amount": 5}, token=_token()), provider=fake_provider)
    assert response["statusCode"] == 500
    assert json.loads(response["body"])["code"] == "REFUND_FAILED"


def test_find_payment_intent_handler_uses_same_tie_break(fake_provider):
    fake_provider.listed = [
        {"id": "pi_newest", "amount": 4999, "status": "succeeded", "created": 1714564900},
        {"id": "pi_older", "amount": 4999, "status": "succeeded", "created": 1714564800},
    ]
    payload = {"amount": 49.99, "startDate": "2024-05-01T00:00:00Z", "endDate": "2024-05-02T00:00:00Z"}

    response = functions.find_payment_intent(_post(payload, token=_token()), provider=fake_provider)

    assert response["statusCode"] == 200
    assert json.loads(response["body"])["paymentIntentId"] == "pi_newest"


def test_get_payment_intent_handler(fake_provider):
    fake_provider.sessions["cs_1"] = {"id": "cs_1", "payment_intent": "pi_1"}
    fake_provider.intents["pi_1"] = {"id": "pi_1", "amount": 1000, "status": "succeeded"}
    event = {"httpMethod": "GET", "queryStringParameters": {"sessionId": "cs_1"}}

    response = functions.get_payment_intent(event, provider=fake_provider)

    assert response["statusCode"] == 200
    assert json.loads(response["body"])["amount"] == 10.0


def test_get_payment_intent_handler_requires_session_id(fake_provider):
    response = functions.get_payment_intent({"httpMethod": "GET"}, provider=fake_provider)
    assert response["statusCode"] == 400


def test_invalid_json_body(fake_provider):
    event = {"httpMethod": "POST", "headers": {"X-CSRF-Token": _token()}, "body": "{oops"}
    assert functions.process_refund(event, provider=fake_provider)["statusCode"] == 400


def test_chat_handler_echoes_upstream_status(monkeypatch):
    monkeypatch.setattr("backend.config.OPENROUTER_API_KEY", "or-key")
    monkeypatch.setattr(
        "backend.notifications.service.httpx.post",
        lambda url, **kw: httpx.Response(503, text="overloaded"),
    )
    response = functions.chat(_post({"messages": [{"role": "user", "content": "Hi"}]}, token=_token()))
    assert response["statusCode"] == 503
    assert json.loads(response["body"])["error"] == "AI service temporarily unavailable"


def test_send_email_handler_missing_config(monkeypatch):
    monkeypatch.setattr("backend.config.MAILJET_API_KEY", "")
    payload = {"to": "a@example.com", "subject": "Hello", "htmlContent": "<p>x</p>"}
    response = functions.send_email(_post(payload, token=_token()))
    assert response["statusCode"] == 500
    assert json.loads(response["body"]) == {"error": "Email service is not configured", "code": "CONFIG_ERROR"}


def test_unexpected_error_is_generic(monkeypatch, fake_provider):
    def _boom(*args, **kwargs):
        raise RuntimeError("secret stack detail")

    monkeypatch.setattr("backend.payments.service.process_refund", _boom)
    response = functions.process_refund(_post({"paymentIntentId": "pi_1", "amount": 5}, token=_token()), provider=fake_provider)
    assert response["statusCode"] == 500
    assert json.loads(response["body"]) == {"error": "Internal server error"}
