from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

from app.api.errors import AppError
from app.core.snowflake import Snowflake
from app.integrations.stripe_gateway import StripeGateway, to_minor_units
from app.models import to_money


def test_to_minor_units():
    assert to_minor_units(Decimal("1450.00"), "inr") == 145000
    assert to_minor_units(Decimal("12.345"), "usd") == 1235
    assert to_minor_units(Decimal("1500"), "JPY") == 1500


def test_to_money_rounds_half_up():
    assert to_money("12.5") == Decimal("12.50")
    assert to_money(Decimal("0.005")) == Decimal("0.01")
    assert to_money(3) == Decimal("3.00")


def test_mock_gateway():
    gateway = StripeGateway(api_key=None, mock=True)
    result = gateway.create_intent(amount=Decimal("799.00"), currency="INR", metadata={"user_id": "7"})
    assert result.payment_intent_id.startswith("pi_mock_")
    assert result.client_secret.startswith(result.payment_intent_id)
    assert result.amount == 79900
    assert result.currency == "inr"

    info = gateway.retrieve_intent(result.payment_intent_id)
    assert info.status == "succeeded"
    assert (info.amount, info.currency) == (79900, "inr")
    assert info.metadata == {"user_id": "7"}

    with pytest.raises(AppError) as exc:
        gateway.retrieve_intent("pi_never_created")
    assert exc.value.code == 404302
    assert exc.value.status_code == 404


def test_real_gateway_requires_key():
    with pytest.raises(ValueError):
        StripeGateway(api_key=None, mock=False)


def test_gateway_errors_become_upstream_errors():
    gateway = StripeGateway(api_key="sk_test_dummy", mock=False)

    def fail(*args, **kwargs):
        raise stripe.APIConnectionError("connection reset")

    gateway._client = SimpleNamespace(payment_intents=SimpleNamespace(create=fail, retrieve=fail))

    with pytest.raises(AppError) as exc:
        gateway.create_intent(amount=Decimal("10.00"), currency="inr")
    assert exc.value.code == 500101
    assert exc.value.status_code == 500

    with pytest.raises(AppError) as exc:
        gateway.retrieve_intent("pi_123")
    assert exc.value.code == 500101


def test_missing_intent_becomes_not_found():
    gateway = StripeGateway(api_key="sk_test_dummy", mock=False)

    def missing(*args, **kwargs):
        raise stripe.InvalidRequestError("No such payment_intent: 'pi_gone'", param="intent", code="resource_missing")

    gateway._client = SimpleNamespace(payment_intents=SimpleNamespace(retrieve=missing))
    with pytest.raises(AppError) as exc:
        gateway.retrieve_intent("pi_gone")
    assert exc.value.code == 404302


def test_real_gateway_maps_intent_fields():
    gateway = StripeGateway(api_key="sk_test_dummy", mock=False)
    calls = []

    def retrieve(payment_intent_id):
        return SimpleNamespace(
            id=payment_intent_id,
            status="processing",
            amount=50000,
            currency="inr",
            metadata={"user_id": "7"},
        )

    def create(params):
        calls.append(params)
        return SimpleNamespace(
            id="pi_live_1",
            client_secret="pi_live_1_secret_x",
            amount=params["amount"],
            currency=params["currency"],
            status="requires_payment_method",
        )

    gateway._client = SimpleNamespace(payment_intents=SimpleNamespace(create=create, retrieve=retrieve))
    result = gateway.create_intent(amount=Decimal("500.00"), currency="inr", metadata={"user_id": "7"})
    assert result.payment_intent_id == "pi_live_1"
    assert result.amount == 50000
    assert calls[0]["metadata"] == {"user_id": "7"}
    assert calls[0]["automatic_payment_methods"] == {"enabled": True}

    info = gateway.retrieve_intent("pi_live_1")
    assert (info.status, info.amount, info.currency) == ("processing", 50000, "inr")
    assert info.metadata == {"user_id": "7"}


def test_snowflake_ids_are_increasing_and_unique():
    generator = Snowflake(node_id=42)
    ids = [generator.next_id() for _ in range(1000)]
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)


def test_snowflake_rejects_bad_node_id():
    with pytest.raises(ValueError):
        Snowflake(node_id=1024)
