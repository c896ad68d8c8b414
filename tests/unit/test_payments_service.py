from datetime import datetime, timezone

import pytest

from backend.errors import NotFoundError, ProviderError, ValidationError
from backend.payments import service as payments_service
from backend.payments.provider import PaymentProviderError


def _checkout(provider, **overrides):
    kwargs = dict(
        amount=49.99,
        order_id="T1",
        title="Widget",
        frontend_url="https://shop.example.com",
        currency="usd",
    )
    kwargs.update(overrides)
    return payments_service.create_checkout_session(provider, **kwargs)


# --- checkout -------------------------------------------------------------

def test_checkout_scenario_ticket(fake_provider):
    result = _checkout(fake_provider)

    params = fake_provider.last("create_session")
    line = params["line_items"][0]
    assert line["price_data"]["unit_amount"] == 4999
    assert line["price_data"]["product_data"]["name"] == "Widget"
    assert line["quantity"] == 1
    assert params["mode"] == "payment"
    assert params["metadata"]["orderId"] == "T1"
    assert params["metadata"]["isStoreOrder"] == "false"
    assert "ticketId=T1" in params["success_url"]
    assert "session_id={CHECKOUT_SESSION_ID}" in params["success_url"]
    assert params["cancel_url"] == "https://shop.example.com/cancel?ticketId=T1"
    assert "customer_email" not in params
    assert result == {"url": fake_provider.session["url"], "sessionId": "cs_test_123"}


def test_checkout_store_order_uses_order_id_param(fake_provider):
    _checkout(fake_provider, order_id="O42", is_store_order=True, customer_email="a@b.c")
    params = fake_provider.last("create_session")
    assert "orderId=O42" in params["success_url"]
    assert "ticketId" not in params["success_url"]
    assert params["metadata"]["isStoreOrder"] == "true"
    assert params["customer_email"] == "a@b.c"


@pytest.mark.parametrize("amount, units", [(0.29, 29), (10.005, 1001), ("19.995", 2000), (1, 100)])
def test_checkout_rounds_to_minor_units(fake_provider, amount, units):
    _checkout(fake_provider, amount=amount)
    assert fake_provider.last("create_session")["line_items"][0]["price_data"]["unit_amount"] == units


@pytest.mark.parametrize("amount", [0, -5, "abc", "NaN", True, "0.004", "1e30"])
def test_checkout_invalid_amount_makes_no_provider_call(fake_provider, amount):
    with pytest.raises(ValidationError) as exc:
        _checkout(fake_provider, amount=amount)
    assert exc.value.code == "INVALID_AMOUNT"
    assert fake_provider.count() == 0


@pytest.mark.parametrize("field", ["order_id", "title", "amount"])
def test_checkout_missing_fields(fake_provider, field):
    with pytest.raises(ValidationError) as exc:
        _checkout(fake_provider, **{field: "  " if field != "amount" else None})
    assert exc.value.code == "MISSING_FIELDS"
    assert fake_provider.count() == 0


def test_checkout_provider_failure(fake_provider):
    fake_provider.fail["create_session"] = PaymentProviderError("Invalid API Key", {"code": "api_key_invalid"})
    with pytest.raises(ProviderError) as exc:
        _checkout(fake_provider)
    assert exc.value.code == "CHECKOUT_CREATE_FAILED"
    assert exc.value.status_code == 500
    assert exc.value.details["code"] == "api_key_invalid"


# --- résolution par session ------------------------------------------------

def test_resolve_by_session(fake_provider):
    fake_provider.sessions["cs_1"] = {
        "id": "cs_1",
        "status": "complete",
        "payment_status": "paid",
        "payment_intent": "pi_1",
        "metadata": {"orderId": "O1"},
    }
    fake_provider.intents["pi_1"] = {"id": "pi_1", "amount": 4999, "status": "succeeded", "metadata": {"orderId": "O1"}}

    result = payments_service.resolve_by_session(fake_provider, "cs_1")

    assert result["paymentIntentId"] == "pi_1"
    assert result["amount"] == 49.99
    assert result["status"] == "succeeded"
    assert result["session"] == {"id": "cs_1", "status": "complete", "paymentStatus": "paid", "metadata": {"orderId": "O1"}}


def test_resolve_by_session_without_intent(fake_provider):
    fake_provider.sessions["cs_open"] = {"id": "cs_open", "status": "open", "payment_intent": None}
    with pytest.raises(NotFoundError) as exc:
        payments_service.resolve_by_session(fake_provider, "cs_open")
    assert exc.value.code == "PAYMENT_INTENT_NOT_FOUND"
    assert fake_provider.count("retrieve_intent") == 0


def test_resolve_by_session_expanded_intent(fake_provider):
    fake_provider.sessions["cs_2"] = {"id": "cs_2", "payment_intent": {"id": "pi_2"}}
    fake_provider.intents["pi_2"] = {"id": "pi_2", "amount": 100, "status": "succeeded"}
    assert payments_service.resolve_by_session(fake_provider, "cs_2")["paymentIntentId"] == "pi_2"


def test_resolve_by_session_provider_error(fake_provider):
    with pytest.raises(ProviderError) as exc:
        payments_service.resolve_by_session(fake_provider, "cs_unknown")
    assert exc.value.code == "PAYMENT_LOOKUP_FAILED"


def test_resolve_by_session_requires_id(fake_provider):
    with pytest.raises(ValidationError):
        payments_service.resolve_by_session(fake_provider, "")
    assert fake_provider.count() == 0


# --- heuristique -----------------------------------------------------------

def _intent(pid, amount, status="succeeded", email=None, created=1714564800):
    return {"id": pid, "amount": amount, "status": status, "receipt_email": email, "created": created}


def _find(provider, **overrides):
    kwargs = dict(amount=49.99, start_date="2024-05-01T00:00:00Z", end_date="2024-05-02T00:00:00Z")
    kwargs.update(overrides)
    return payments_service.resolve_by_heuristic(provider, **kwargs)


def test_heuristic_lists_window_in_unix_seconds(fake_provider):
    fake_provider.listed = [_intent("pi_1", 4999)]
    _find(fake_provider)
    call = fake_provider.last("list_intents")
    assert call["created_gte"] == int(datetime(2024, 5, 1, tzinfo=timezone.utc).timestamp())
    assert call["created_lte"] == int(datetime(2024, 5, 2, tzinfo=timezone.utc).timestamp())
    assert call["limit"] == 100


def test_heuristic_returns_first_qualifying_match(fake_provider):
    fake_provider.listed = [
        _intent("pi_wrong_amount", 5000),
        _intent("pi_pending", 4999, status="requires_payment_method"),
        _intent("pi_first", 4999),
        _intent("pi_second", 4999),
    ]
    result = _find(fake_provider)
    assert result == {
        "paymentIntentId": "pi_first",
        "amount": 49.99,
        "status": "succeeded",
        "created": "2024-05-01T12:00:00Z",
    }


def test_heuristic_with_email_matches_receipt_email(fake_provider):
    fake_provider.listed = [
        _intent("pi_other", 4999, email="other@example.com"),
        _intent("pi_mine", 4999, status="processing", email="me@example.com"),
    ]
    result = _find(fake_provider, customer_email="me@example.com")
    assert result["paymentIntentId"] == "pi_mine"


def test_heuristic_no_match(fake_provider):
    fake_provider.listed = [_intent("pi_1", 4998), _intent("pi_2", 4999, status="canceled")]
    with pytest.raises(NotFoundError) as exc:
        _find(fake_provider)
    assert exc.value.code == "PAYMENT_INTENT_NOT_FOUND"


def test_heuristic_rejects_inverted_range(fake_provider):
    with pytest.raises(ValidationError) as exc:
        _find(fake_provider, start_date="2024-05-03T00:00:00Z")
    assert exc.value.code == "INVALID_DATE_RANGE"
    assert fake_provider.count() == 0


@pytest.mark.parametrize("overrides, code", [
    ({"amount": None}, "MISSING_FIELDS"),
    ({"start_date": ""}, "MISSING_FIELDS"),
    ({"end_date": "not-a-date"}, "INVALID_DATE_RANGE"),
    ({"amount": -3}, "INVALID_AMOUNT"),
])
def test_heuristic_validation(fake_provider, overrides, code):
    with pytest.raises(ValidationError) as exc:
        _find(fake_provider, **overrides)
    assert exc.value.code == code
    assert fake_provider.count() == 0


# --- remboursement ---------------------------------------------------------

def test_refund_scenario(fake_provider):
    result = payments_service.process_refund(
        fake_provider, payment_intent_id="pi_123", amount=20.00, reason="wrong size"
    )
    call = fake_provider.last("create_refund")
    assert call == {
        "payment_intent": "pi_123",
        "amount": 2000,
        "reason": "requested_by_customer",
        "metadata": {"refund_reason": "wrong size"},
    }
    assert result == {"success": True, "refundId": "re_test_1", "status": "succeeded", "amount": 20.0}


@pytest.mark.parametrize("amount", [12.34, "0.29", 99.995, 1])
def test_refund_amount_round_trip(fake_provider, amount):
    result = payments_service.process_refund(fake_provider, payment_intent_id="pi_1", amount=amount)
    assert abs(result["amount"] - float(amount)) < 0.01


def test_refund_default_reason(fake_provider):
    payments_service.process_refund(fake_provider, payment_intent_id="pi_1", amount=5)
    assert fake_provider.last("create_refund")["metadata"] == {"refund_reason": "Customer requested refund"}


@pytest.mark.parametrize("amount", [0, -1, "ten", None, "0.004", "1e30"])
def test_refund_invalid_amount_makes_no_provider_call(fake_provider, amount):
    with pytest.raises(ValidationError):
        payments_service.process_refund(fake_provider, payment_intent_id="pi_1", amount=amount)
    assert fake_provider.count() == 0


def test_refund_provider_rejection_keeps_diagnostics(fake_provider):
    fake_provider.fail["create_refund"] = PaymentProviderError(
        "Charge has already been refunded.",
        {"code": "charge_already_refunded", "type": "InvalidRequestError", "decline_code": None, "param": None},
    )
    with pytest.raises(ProviderError) as exc:
        payments_service.process_refund(fake_provider, payment_intent_id="pi_1", amount=5)
    assert exc.value.code == "REFUND_FAILED"
    assert exc.value.details["code"] == "charge_already_refunded"
    assert exc.value.details["message"] == "Charge has already been refunded."
