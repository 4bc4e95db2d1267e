from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from lesspay.errors import LesspayApiError

# Maximum span of a payin query window.
MAX_QUERY_SPAN_MS = 7 * 24 * 60 * 60 * 1000


class RequestModel(BaseModel):
    """Base for request bodies; `to_params()` is what gets signed and sent."""

    model_config = ConfigDict(populate_by_name=True)

    def to_params(self) -> Dict[str, Any]:
        # Unset optionals are omitted, matching how the gateway serializes its own bodies.
        return self.model_dump(mode="json", exclude_none=True)


class CardData(BaseModel):
    # 16-19 digits, no separators.
    number: str = Field(pattern=r"^\d{16,19}$")
    expiry_month: int = Field(ge=1, le=12)
    expiry_year: int = Field(ge=1000, le=9999)
    cvv: str = Field(pattern=r"^\d{3,4}$")
    store_for_future_use: Optional[bool] = None


class TokenData(BaseModel):
    token: str


class ChannelExtra(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    extra_type: Literal["card", "token", "payment session"] = Field(
        validation_alias=AliasChoices("extra_type", "extraType")
    )
    card_data: Optional[CardData] = Field(default=None, validation_alias=AliasChoices("card_data", "cardData"))
    token_data: Optional[TokenData] = Field(default=None, validation_alias=AliasChoices("token_data", "tokenData"))

    @model_validator(mode="after")
    def check_payload_for_type(self) -> "ChannelExtra":
        if self.extra_type == "card" and self.card_data is None:
            raise ValueError("card_data is required when extra_type='card'")
        if self.extra_type == "token" and self.token_data is None:
            raise ValueError("token_data is required when extra_type='token'")
        return self


class CreatePayinOrder(RequestModel):
    """POST /api/global/v1/pay/create-order"""

    request_id: str = Field(min_length=1, max_length=20)
    product_name: str = Field(min_length=1, max_length=30)
    description: str = Field(min_length=1, max_length=50)
    # Amounts travel as strings, e.g. "100.00".
    target_amount: str
    target_currency: str
    transaction_type: Literal["PAY_IN"] = "PAY_IN"
    success_url: str = Field(max_length=255)
    fail_url: str = Field(max_length=255)
    # "V1" only for merchant F11.
    api_version: Literal["V1", "V2"] = "V2"
    # 1 = cashier, 2 = openapi
    pay_access_type: Literal[1, 2] = 1

    notify_url: Optional[str] = Field(default=None, max_length=255)
    expired_time: Optional[int] = Field(default=None, gt=0)
    way_code: Optional[str] = None
    transaction_network: Optional[str] = None
    way_type: Optional[str] = None
    use_channel_request_id: Optional[bool] = None
    channel_extra: Optional[ChannelExtra] = None

    @model_validator(mode="after")
    def check_openapi_card(self) -> "CreatePayinOrder":
        if self.channel_extra is not None and self.pay_access_type != 2:
            raise ValueError("channel_extra is only accepted in openapi mode (pay_access_type=2)")
        return self


class _OrderRef(RequestModel):
    request_id: Optional[str] = None
    pay_order_id: Optional[str] = None

    @model_validator(mode="after")
    def check_order_ref(self) -> "_OrderRef":
        if not self.request_id and not self.pay_order_id:
            raise ValueError("one of request_id or pay_order_id is required")
        return self


class PayinQuery(_OrderRef):
    """POST /api/global/v1/pay/query-order"""

    start_time: int
    end_time: Optional[int] = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=1000)

    @model_validator(mode="after")
    def check_window(self) -> "PayinQuery":
        if self.end_time is not None:
            if self.end_time < self.start_time:
                raise ValueError("end_time must not be before start_time")
            if self.end_time - self.start_time > MAX_QUERY_SPAN_MS:
                raise ValueError("query window must not exceed 7 days")
        return self


class PayoutOrderDetail(BaseModel):
    mch_order_id: str
    amount: str
    bank_account_no: str
    bank_account_name: str
    bank_account_type: Literal["business", "individual"]
    bank_name: str
    bank_country_code: str = Field(pattern=r"^[A-Z]{2}$")
    bank_swift_code: str = Field(pattern=r"^[A-Z0-9]{8}([A-Z0-9]{3})?$")


def _decimal(value: str, name: str) -> Decimal:
    try:
        d = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"{name} is not a decimal amount: {value!r}")
    if not d.is_finite():
        raise ValueError(f"{name} is not a decimal amount: {value!r}")
    return d


class CreatePayoutOrder(RequestModel):
    """POST /api/global/payout/batch/create-order"""

    request_id: str = Field(min_length=1)
    currency: str = Field(pattern=r"^[A-Z]{3}$")
    total_amount: str
    payout_order_details: List[PayoutOrderDetail] = Field(min_length=1)

    product_name: Optional[str] = None
    description: Optional[str] = None
    way_code: Optional[str] = None
    way_type: Optional[str] = None
    expired_time: Optional[int] = Field(default=None, gt=0)
    transaction_network: Optional[str] = None
    notify_url: Optional[str] = None

    @model_validator(mode="after")
    def check_total(self) -> "CreatePayoutOrder":
        total = _decimal(self.total_amount, "total_amount")
        details_sum = sum(
            (_decimal(d.amount, f"payout_order_details[{i}].amount") for i, d in enumerate(self.payout_order_details)),
            Decimal(0),
        )
        if total != details_sum:
            raise ValueError(f"total_amount {self.total_amount} != sum of detail amounts {details_sum}")
        ids = [d.mch_order_id for d in self.payout_order_details]
        if len(set(ids)) != len(ids):
            raise ValueError("mch_order_id must be unique within a request")
        return self


class PayoutQuery(_OrderRef):
    """POST /api/global/payout/query"""


class TriggerNotify(_OrderRef):
    """POST /api/global/payout/triggerNotify"""


class PayoutBank(RequestModel):
    """POST /api/global/payout/bank"""

    bank_country_code: str = Field(pattern=r"^[A-Z]{2}$")
    currency: str = Field(pattern=r"^[A-Z]{3}$")
    way_code: str = "TAZAPAY_PAYOUT"


class ApiResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: int
    msg: Optional[str] = None
    data: Any = None

    @property
    def ok(self) -> bool:
        return self.code == 0

    def raise_for_code(self) -> "ApiResponse":
        if not self.ok:
            raise LesspayApiError(
                f"gateway returned code={self.code}: {self.msg}",
                code=self.code,
                msg=self.msg,
                body=self.model_dump(),
            )
        return self


class PayoutDetail(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    payout_order_detail_id: Optional[str] = None
    mch_order_id: Optional[str] = None
    amount: Optional[str] = None
    actual_amount: Optional[str] = None
    # CREATED, PROCESSING, SUCCEEDED, FAILED, CANCELED, REFUNDED, CLOSED
    status: Optional[str] = None
    # PENDING, APPROVED, REJECTED
    audit_state: Optional[str] = None
    fail_reason: Optional[str] = None
    rejected_reason: Optional[str] = None
    channel_order_no: Optional[str] = None
    bank_account_no: Optional[str] = None
    bank_account_name: Optional[str] = None
    bank_account_type: Optional[str] = None
    bank_name: Optional[str] = None
    bank_country_code: Optional[str] = None
    bank_swift_code: Optional[str] = None
    success_time: Optional[Union[str, int]] = None


class PayoutNotification(BaseModel):
    """Callback body posted to the merchant's notify_url (same shape as a payout query result)."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    pay_order_id: str
    request_id: Optional[str] = None
    # PENDING_CONFIRM, PENDING_PAY, SUCCEED, FAILED, CANCELED, REFUND, CLOSED, PARTIAL_SUCCESS
    order_status: Optional[str] = None
    currency: Optional[str] = None
    total_amount: Optional[str] = None
    decimal_places: Optional[int] = None
    fail_reason: Optional[str] = None
    created_at: Optional[Union[str, int]] = None
    details: List[PayoutDetail] = Field(default_factory=list)
