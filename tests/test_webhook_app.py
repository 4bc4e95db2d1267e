import json
import time
from typing import Any, List, Tuple

from fastapi.testclient import TestClient

from lesspay.crypto import sign
from lesspay.schemas import PayoutNotification
from lesspay.webhook.app import create_app
from lesspay.webhook.inbox import InMemoryInbox

SECRET = "s3cr3t"

PAYOUT_CALLBACK = {
    "pay_order_id": "P202501130001",
    "request_id": "PO1736740800001",
    "order_status": "SUCCEED",
    "currency": "PHP",
    "total_amount": "1000.00",
    "decimal_places": 2,
    "fail_reason": None,
    "created_at": "2025-01-13T10:00:00.000+08:00",
    "details": [
        {
            "payout_order_detail_id": "POD202501130001",
            "mch_order_id": "MCH_001",
            "amount": "500.00",
            "actual_amount": "500.00",
            "status": "Succeeded",
            "audit_state": "APPROVED",
            "fail_reason": None,
            "bank_name": "BDO",
            "bank_country_code": "PH",
            "success_time": "2025-01-13T10:01:40.000+08:00",
        }
    ],
}


def _headers(body: dict, secret: str = SECRET) -> dict:
    return {
        "Content-Type": "application/json",
        "X-Auth-Timestamp": str(int(time.time() * 1000)),
        "X-Auth-Signature": sign(body, secret),
    }


def test_gateway_signature_over_callback_with_nested_nulls_is_accepted():
    # The gateway signs its own serialization, which leaves out null-valued keys.
    body = dict(PAYOUT_CALLBACK, details=[dict(PAYOUT_CALLBACK["details"][0], rejected_reason=None)])
    gateway_view = {k: v for k, v in body.items() if v is not None}
    gateway_view["details"] = [{k: v for k, v in d.items() if v is not None} for d in body["details"]]
    headers = _headers(gateway_view)

    client = TestClient(create_app(SECRET))
    r = client.post("/payout-notify", content=json.dumps(body), headers=headers)
    assert r.status_code == 200
    assert r.text == "SUCCESS"


def test_payout_callback_accepted_and_recorded():
    seen: List[Tuple[str, Any]] = []
    inbox = InMemoryInbox()
    client = TestClient(create_app(SECRET, inbox=inbox, on_notification=lambda kind, n: seen.append((kind, n))))

    r = client.post("/payout-notify", content=json.dumps(PAYOUT_CALLBACK), headers=_headers(PAYOUT_CALLBACK))
    assert r.status_code == 200
    assert r.text == "SUCCESS"

    rec = inbox.get("payout", "P202501130001")
    assert rec is not None
    assert rec.order_status == "SUCCEED"

    assert len(seen) == 1
    kind, notification = seen[0]
    assert kind == "payout"
    assert isinstance(notification, PayoutNotification)
    assert notification.details[0].mch_order_id == "MCH_001"

    r2 = client.get("/notifications", params={"kind": "payout"})
    assert r2.status_code == 200
    assert [n["order_id"] for n in r2.json()] == ["P202501130001"]


def test_key_order_and_whitespace_of_callback_body_do_not_matter():
    client = TestClient(create_app(SECRET, inbox=InMemoryInbox()))
    reordered = dict(reversed(list(PAYOUT_CALLBACK.items())))
    body = json.dumps(reordered, indent=4)
    r = client.post("/payout-notify", content=body, headers=_headers(PAYOUT_CALLBACK))
    assert r.status_code == 200


def test_tampered_callback_rejected():
    inbox = InMemoryInbox()
    client = TestClient(create_app(SECRET, inbox=inbox))
    tampered = dict(PAYOUT_CALLBACK, total_amount="9999.00")
    r = client.post("/payout-notify", content=json.dumps(tampered), headers=_headers(PAYOUT_CALLBACK))
    assert r.status_code == 401
    assert inbox.list_recent() == []


def test_wrong_secret_and_missing_signature_rejected():
    client = TestClient(create_app(SECRET, inbox=InMemoryInbox()))
    body = json.dumps(PAYOUT_CALLBACK)

    r = client.post("/payout-notify", content=body, headers=_headers(PAYOUT_CALLBACK, secret="other"))
    assert r.status_code == 401

    r = client.post("/payout-notify", content=body, headers={"Content-Type": "application/json"})
    assert r.status_code == 401


def test_malformed_body_rejected():
    client = TestClient(create_app(SECRET, inbox=InMemoryInbox()))
    r = client.post(
        "/payout-notify",
        content="{not json",
        headers={"X-Auth-Signature": "A" * 64},
    )
    assert r.status_code == 400


def test_signed_body_without_order_id_rejected():
    client = TestClient(create_app(SECRET, inbox=InMemoryInbox()))
    body = {"order_status": "SUCCEED"}
    r = client.post("/payout-notify", content=json.dumps(body), headers=_headers(body))
    assert r.status_code == 400


def test_missing_secret_is_a_server_error():
    client = TestClient(create_app("", inbox=InMemoryInbox()))
    r = client.post("/payout-notify", content=json.dumps(PAYOUT_CALLBACK), headers=_headers(PAYOUT_CALLBACK))
    assert r.status_code == 500


def test_stale_timestamp_rejected_when_skew_check_enabled():
    client = TestClient(create_app(SECRET, max_skew_s=60, inbox=InMemoryInbox()))
    headers = _headers(PAYOUT_CALLBACK)

    r = client.post("/payout-notify", content=json.dumps(PAYOUT_CALLBACK), headers=headers)
    assert r.status_code == 200

    headers["X-Auth-Timestamp"] = str(int(time.time() * 1000) - 10 * 60 * 1000)
    r = client.post("/payout-notify", content=json.dumps(PAYOUT_CALLBACK), headers=headers)
    assert r.status_code == 400


def test_payin_callback_keyed_by_order_id():
    inbox = InMemoryInbox()
    client = TestClient(create_app(SECRET, inbox=inbox))
    body = {"request_id": "MCH1", "pay_order_id": "", "order_status": "SUCCEED", "amount": "100.00"}
    r = client.post("/payin-notify", content=json.dumps(body), headers=_headers(body))
    assert r.status_code == 200
    assert r.text == "SUCCESS"
    assert inbox.get("payin", "MCH1") is not None

    empty = {"order_status": "SUCCEED"}
    r = client.post("/payin-notify", content=json.dumps(empty), headers=_headers(empty))
    assert r.status_code == 400


def test_healthz_reports_configuration():
    client = TestClient(create_app(SECRET, max_skew_s=30, inbox=InMemoryInbox()))
    r = client.get("/healthz")
    assert r.json() == {"ok": True, "secret_configured": True, "max_skew_s": 30}
