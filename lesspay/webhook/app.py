import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from lesspay.core.params import to_json
from lesspay.schemas import PayoutNotification
from lesspay.utils.env import _env_int, _env_str
from lesspay.webhook.inbox import InMemoryInbox, NotificationKind, NotificationRecord
from lesspay.webhook.verify import CallbackVerdict, verify_callback

log = logging.getLogger(__name__)

# Body the gateway expects back once a callback has been accepted.
ACK = "SUCCESS"

NotificationHandler = Callable[[NotificationKind, Any], None]


def _reject(verdict: CallbackVerdict) -> None:
    if verdict.reason in ("missing_signature", "signature_mismatch"):
        raise HTTPException(status_code=401, detail="Invalid signature")
    if verdict.reason == "bad_timestamp":
        raise HTTPException(status_code=400, detail="Bad timestamp")
    raise HTTPException(status_code=400, detail="Invalid body")


def create_app(
    secret: Optional[str] = None,
    *,
    max_skew_s: Optional[int] = None,
    inbox: Optional[InMemoryInbox] = None,
    on_notification: Optional[NotificationHandler] = None,
) -> FastAPI:
    """
    Merchant-side receiver for gateway callbacks.

    Unset arguments fall back to LESSPAY_APP_SECRET and
    LESSPAY_WEBHOOK_MAX_SKEW_S.
    """
    app_secret = _env_str("LESSPAY_APP_SECRET", "") if secret is None else secret
    skew = max(0, _env_int("LESSPAY_WEBHOOK_MAX_SKEW_S", 0) if max_skew_s is None else int(max_skew_s))
    store = inbox if inbox is not None else InMemoryInbox()

    app = FastAPI(title="Lesspay Webhook Receiver", version="0.1.0")
    app.state.inbox = store

    def _authenticate(body: bytes, signature: Optional[str], timestamp: Optional[str]) -> Dict[str, Any]:
        if not app_secret:
            raise HTTPException(status_code=500, detail="Webhook misconfigured: missing secret")
        verdict = verify_callback(
            body,
            signature,
            app_secret,
            timestamp_ms=timestamp,
            max_skew_s=skew,
            logger=log,
        )
        if not verdict.ok:
            log.warning("callback rejected: %s", verdict.reason)
            _reject(verdict)
        payload = to_json(verdict.tree)
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Invalid body")
        return payload

    def _dispatch(kind: NotificationKind, item: Any) -> None:
        if on_notification is None:
            return
        on_notification(kind, item)

    @app.get("/healthz")
    def healthz():
        return {"ok": True, "secret_configured": bool(app_secret), "max_skew_s": skew}

    @app.post("/payout-notify", response_class=PlainTextResponse)
    async def payout_notify(
        request: Request,
        x_auth_signature: Optional[str] = Header(default=None),
        x_auth_timestamp: Optional[str] = Header(default=None),
    ):
        payload = _authenticate(await request.body(), x_auth_signature, x_auth_timestamp)
        try:
            notification = PayoutNotification.model_validate(payload)
        except ValidationError as e:
            log.warning("payout callback has unexpected shape: %s", e)
            raise HTTPException(status_code=400, detail="Invalid payout notification")

        store.record("payout", notification.pay_order_id, payload, order_status=notification.order_status)
        log.info(
            "payout callback accepted: pay_order_id=%s status=%s",
            notification.pay_order_id,
            notification.order_status,
        )
        _dispatch("payout", notification)
        return ACK

    @app.post("/payin-notify", response_class=PlainTextResponse)
    async def payin_notify(
        request: Request,
        x_auth_signature: Optional[str] = Header(default=None),
        x_auth_timestamp: Optional[str] = Header(default=None),
    ):
        payload = _authenticate(await request.body(), x_auth_signature, x_auth_timestamp)
        order_id = payload.get("pay_order_id") or payload.get("request_id")
        if not order_id:
            raise HTTPException(status_code=400, detail="Missing pay_order_id/request_id")

        status = payload.get("order_status")
        store.record("payin", str(order_id), payload, order_status=str(status) if status is not None else None)
        log.info("payin callback accepted: order_id=%s status=%s", order_id, status)
        _dispatch("payin", payload)
        return ACK

    @app.get("/notifications", response_model=List[NotificationRecord])
    def notifications(kind: Optional[NotificationKind] = None):
        return store.list_recent(kind)

    return app


app = create_app()
