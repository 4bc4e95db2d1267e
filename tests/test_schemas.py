import pytest
from pydantic import ValidationError

from lesspay.schemas import (
    ChannelExtra,
    CreatePayinOrder,
    CreatePayoutOrder,
    PayinQuery,
    PayoutBank,
    PayoutNotification,
    PayoutQuery,
)


def _payin(**overrides):
    fields = dict(
        request_id="M1736740800001",
        product_name="Lesspay Order",
        description="Lesspay Order Description",
        target_amount="100",
        target_currency="CNY",
        success_url="https://www.doopayment.com",
        fail_url="https://www.doopayment.com",
    )
    fields.update(overrides)
    return CreatePayinOrder(**fields)


def _detail(mch_order_id: str, amount: str) -> dict:
    return {
        "mch_order_id": mch_order_id,
        "amount": amount,
        "bank_account_no": "1234567890",
        "bank_account_name": "account_name_1234",
        "bank_account_type": "business",
        "bank_name": "Hong Kong and Shanghai Banking Corp.",
        "bank_country_code": "PH",
        "bank_swift_code": "HSBCPH22",
    }


def test_payin_defaults_and_params_omit_unset_fields():
    params = _payin().to_params()
    assert params["transaction_type"] == "PAY_IN"
    assert params["api_version"] == "V2"
    assert params["pay_access_type"] == 1
    assert "notify_url" not in params
    assert "channel_extra" not in params


def test_payin_field_limits():
    with pytest.raises(ValidationError):
        _payin(request_id="X" * 21)
    with pytest.raises(ValidationError):
        _payin(product_name="P" * 31)


def test_openapi_card_payment_params():
    order = _payin(
        pay_access_type=2,
        way_type="CARD_PAYMENT",
        channel_extra={
            "extraType": "card",
            "cardData": {
                "number": "4242424242424242",
                "expiry_month": 12,
                "expiry_year": 2027,
                "cvv": "123",
                "store_for_future_use": True,
            },
        },
    )
    extra = order.to_params()["channel_extra"]
    assert extra["extra_type"] == "card"
    assert extra["card_data"]["expiry_month"] == 12
    assert "token_data" not in extra


def test_channel_extra_requires_openapi_mode_and_matching_payload():
    with pytest.raises(ValidationError):
        _payin(channel_extra={"extra_type": "token", "token_data": {"token": "src_x"}})
    with pytest.raises(ValidationError):
        ChannelExtra(extra_type="token")
    with pytest.raises(ValidationError):
        ChannelExtra(extra_type="card", card_data={"number": "42", "expiry_month": 1, "expiry_year": 2027, "cvv": "1"})


def test_order_ref_requires_one_id():
    with pytest.raises(ValidationError):
        PayoutQuery()
    assert PayoutQuery(pay_order_id="P1").to_params() == {"pay_order_id": "P1"}


def test_payin_query_window():
    day = 24 * 60 * 60 * 1000
    q = PayinQuery(request_id="R1", start_time=0, end_time=day)
    assert q.to_params() == {"request_id": "R1", "start_time": 0, "end_time": day, "page": 1, "page_size": 20}
    with pytest.raises(ValidationError):
        PayinQuery(request_id="R1", start_time=0, end_time=8 * day)
    with pytest.raises(ValidationError):
        PayinQuery(request_id="R1", start_time=0, page_size=1001)


def test_payout_total_must_match_details():
    order = CreatePayoutOrder(
        request_id="PO1",
        currency="PHP",
        total_amount="1500.00",
        payout_order_details=[_detail("POD1", "1000.00"), _detail("POD2", "500")],
    )
    assert len(order.to_params()["payout_order_details"]) == 2

    with pytest.raises(ValidationError):
        CreatePayoutOrder(
            request_id="PO1",
            currency="PHP",
            total_amount="1499.99",
            payout_order_details=[_detail("POD1", "1000.00"), _detail("POD2", "500")],
        )
    with pytest.raises(ValidationError):
        CreatePayoutOrder(
            request_id="PO1",
            currency="PHP",
            total_amount="2000",
            payout_order_details=[_detail("POD1", "1000"), _detail("POD1", "1000")],
        )


def test_payout_bank_defaults():
    assert PayoutBank(bank_country_code="PH", currency="PHP").to_params() == {
        "bank_country_code": "PH",
        "currency": "PHP",
        "way_code": "TAZAPAY_PAYOUT",
    }


def test_payout_notification_accepts_numeric_amounts_and_extra_fields():
    n = PayoutNotification.model_validate(
        {
            "pay_order_id": "P202501130001",
            "order_status": "SUCCEED",
            "total_amount": 1000,
            "new_field": "kept",
            "details": [{"mch_order_id": "MCH_001", "amount": 500, "status": "Succeeded"}],
        }
    )
    assert n.total_amount == "1000"
    assert n.details[0].amount == "500"
    assert n.model_extra == {"new_field": "kept"}
