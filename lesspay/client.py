from __future__ import annotations

import json
import logging
import time
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Union

import requests
from pydantic import BaseModel, ValidationError

from lesspay.config import ApiConfig
from lesspay.core.params import ParameterTree, dumps_compact, from_json
from lesspay.crypto import sign
from lesspay.errors import LesspayApiError
from lesspay.schemas import (
    ApiResponse,
    CreatePayinOrder,
    CreatePayoutOrder,
    PayinQuery,
    PayoutBank,
    PayoutQuery,
    TriggerNotify,
)

log = logging.getLogger(__name__)

PAYIN_CREATE_PATH = "/api/global/v1/pay/create-order"
PAYIN_QUERY_PATH = "/api/global/v1/pay/query-order"
PAYOUT_CREATE_PATH = "/api/global/payout/batch/create-order"
PAYOUT_QUERY_PATH = "/api/global/payout/query"
PAYOUT_BANK_PATH = "/api/global/payout/bank"
PAYOUT_TRIGGER_NOTIFY_PATH = "/api/global/payout/triggerNotify"

HEADER_APP_ID = "x-auth-appid"
HEADER_TIMESTAMP = "X-Auth-Timestamp"
HEADER_SIGNATURE = "x-auth-signature"

Body = Union[BaseModel, Mapping[str, Any], None]


def _body_tree(body: Body) -> ParameterTree:
    if isinstance(body, BaseModel):
        to_params = getattr(body, "to_params", None)
        params = to_params() if callable(to_params) else body.model_dump(mode="json", exclude_none=True)
        return from_json(params)
    return from_json(dict(body or {}))


class LesspayApiClient:
    """
    Merchant client for the Lesspay gateway.

    Every call signs the exact body it sends and attaches the app id,
    millisecond timestamp and signature headers.
    """

    def __init__(self, config: ApiConfig, *, logger: Optional[logging.Logger] = None) -> None:
        self.config = config
        self.logger = logger or log

    def generate_signature(self, body: Body) -> str:
        """Signature for a body without sending it."""
        return sign(_body_tree(body), self.config.app_secret)

    def build_headers(self, signature: str, timestamp_ms: int) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            HEADER_APP_ID: self.config.app_id,
            HEADER_TIMESTAMP: str(int(timestamp_ms)),
            HEADER_SIGNATURE: signature,
        }

    def post(self, path: str, body: Body) -> ApiResponse:
        url = f"{self.config.base_url}{path}"
        tree = _body_tree(body)
        json_body = dumps_compact(tree)
        timestamp_ms = int(time.time() * 1000)
        signature = sign(tree, self.config.app_secret, logger=self.logger)
        headers = self.build_headers(signature, timestamp_ms)

        self.logger.info("POST %s", url)
        self.logger.debug(
            "headers: %s=%s, %s=%s, %s=%s",
            HEADER_APP_ID,
            self.config.app_id,
            HEADER_TIMESTAMP,
            timestamp_ms,
            HEADER_SIGNATURE,
            signature,
        )
        self.logger.debug("body: %s", json_body)

        r = requests.post(
            url,
            data=json_body.encode("utf-8"),
            headers=headers,
            timeout=self.config.timeout_s,
        )
        text = r.text or ""
        self.logger.info("response status=%s", r.status_code)
        self.logger.debug("response body: %s", text)

        if r.status_code >= 400:
            raise LesspayApiError(f"HTTP {r.status_code} from {path}", status_code=r.status_code, body=text)
        try:
            # Decimals as written, so callback bodies returned in `data` can be re-signed exactly.
            data = json.loads(text, parse_float=Decimal)
        except ValueError as e:
            raise LesspayApiError(f"non-JSON response from {path}", status_code=r.status_code, body=text) from e
        if not isinstance(data, dict):
            raise LesspayApiError(f"unexpected response shape from {path}", status_code=r.status_code, body=data)
        try:
            return ApiResponse.model_validate(data)
        except ValidationError as e:
            raise LesspayApiError(f"unexpected response shape from {path}: {e}", status_code=r.status_code, body=data) from e

    def create_payin_order(self, order: CreatePayinOrder) -> ApiResponse:
        return self.post(PAYIN_CREATE_PATH, order)

    def query_payin_order(self, query: PayinQuery) -> ApiResponse:
        return self.post(PAYIN_QUERY_PATH, query)

    def create_payout_order(self, order: CreatePayoutOrder) -> ApiResponse:
        return self.post(PAYOUT_CREATE_PATH, order)

    def query_payout_order(self, query: PayoutQuery) -> ApiResponse:
        return self.post(PAYOUT_QUERY_PATH, query)

    def list_payout_banks(self, query: PayoutBank) -> ApiResponse:
        return self.post(PAYOUT_BANK_PATH, query)

    def trigger_payout_notify(self, ref: TriggerNotify) -> ApiResponse:
        """
        Ask the gateway to resend the payout callback.

        `data` of the response is the callback body itself, so it can be
        checked locally with the same secret.
        """
        return self.post(PAYOUT_TRIGGER_NOTIFY_PATH, ref)
