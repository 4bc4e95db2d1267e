from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, List, Optional

import requests
import uvicorn
from pydantic import ValidationError

from lesspay.client import LesspayApiClient
from lesspay.config import load_api_config
from lesspay.core.params import parse_body
from lesspay.crypto import canonical_string, sign, verify
from lesspay.errors import LesspayApiError, ParameterTreeError
from lesspay.schemas import (
    ApiResponse,
    ChannelExtra,
    CreatePayinOrder,
    CreatePayoutOrder,
    PayinQuery,
    PayoutBank,
    PayoutQuery,
    TriggerNotify,
)
from lesspay.utils.env import _env_str

log = logging.getLogger("lesspay.cli")


def _read_input(path: str) -> bytes:
    if path == "-":
        return sys.stdin.buffer.read()
    return Path(path).read_bytes()


def _secret() -> str:
    secret = _env_str("LESSPAY_APP_SECRET", "")
    if not secret:
        raise SystemExit("[lesspay] Missing required env var: LESSPAY_APP_SECRET.")
    return secret


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False, default=str))


def _print_response(resp: ApiResponse) -> int:
    _print_json(resp.model_dump())
    if not resp.ok:
        log.error("gateway returned code=%s msg=%s", resp.code, resp.msg)
        return 1
    return 0


def _add_order_ref(p: argparse.ArgumentParser) -> None:
    p.add_argument("--request-id", default=None, help="Merchant request id.")
    p.add_argument("--pay-order-id", default=None, help="Platform order id.")


def cmd_sign(args: argparse.Namespace) -> int:
    tree = parse_body(_read_input(args.input))
    if args.show_canonical:
        print(canonical_string(tree))
    print(sign(tree, _secret()))
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    tree = parse_body(_read_input(args.input))
    ok = verify(tree, _secret(), args.signature.strip())
    print("OK" if ok else "MISMATCH")
    return 0 if ok else 1


def cmd_payin(args: argparse.Namespace) -> int:
    channel_extra = None
    if args.channel_extra:
        channel_extra = ChannelExtra.model_validate_json(_read_input(args.channel_extra))
    order = CreatePayinOrder(
        request_id=args.request_id or f"MCH{int(time.time() * 1000)}",
        product_name=args.product_name,
        description=args.description,
        target_amount=args.amount,
        target_currency=args.currency,
        success_url=args.success_url,
        fail_url=args.fail_url,
        api_version=args.api_version,
        pay_access_type=args.pay_access_type,
        notify_url=args.notify_url,
        expired_time=args.expired_time,
        way_type=args.way_type,
        way_code=args.way_code,
        transaction_network=args.transaction_network,
        channel_extra=channel_extra,
    )
    client = LesspayApiClient(load_api_config())
    return _print_response(client.create_payin_order(order))


def cmd_payin_query(args: argparse.Namespace) -> int:
    now = int(time.time() * 1000)
    query = PayinQuery(
        request_id=args.request_id,
        pay_order_id=args.pay_order_id,
        start_time=now - int(args.hours * 60 * 60 * 1000),
        end_time=now,
        page=args.page,
        page_size=args.page_size,
    )
    client = LesspayApiClient(load_api_config())
    return _print_response(client.query_payin_order(query))


def cmd_payout(args: argparse.Namespace) -> int:
    order = CreatePayoutOrder.model_validate_json(_read_input(args.input))
    client = LesspayApiClient(load_api_config())
    return _print_response(client.create_payout_order(order))


def cmd_payout_query(args: argparse.Namespace) -> int:
    query = PayoutQuery(request_id=args.request_id, pay_order_id=args.pay_order_id)
    client = LesspayApiClient(load_api_config())
    return _print_response(client.query_payout_order(query))


def cmd_payout_banks(args: argparse.Namespace) -> int:
    query = PayoutBank(bank_country_code=args.country, currency=args.currency, way_code=args.way_code)
    client = LesspayApiClient(load_api_config())
    return _print_response(client.list_payout_banks(query))


def cmd_trigger_notify(args: argparse.Namespace) -> int:
    cfg = load_api_config()
    client = LesspayApiClient(cfg)
    resp = client.trigger_payout_notify(TriggerNotify(request_id=args.request_id, pay_order_id=args.pay_order_id))
    rc = _print_response(resp)
    if rc == 0 and isinstance(resp.data, dict):
        # The returned data is the callback body; this is the signature the merchant should expect.
        print(f"expected X-Auth-Signature: {sign(resp.data, cfg.app_secret)}")
    return rc


def cmd_serve_webhook(args: argparse.Namespace) -> int:
    uvicorn.run("lesspay.webhook.app:app", host=args.host, port=args.port, log_level=args.log_level.lower())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lesspay",
        description="Sign, verify and send Lesspay merchant API requests. Credentials come from LESSPAY_* env vars or .env.",
    )
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("sign", help="Print the signature of a JSON body.")
    p.add_argument("input", nargs="?", default="-", help="JSON file (default: stdin).")
    p.add_argument("--show-canonical", action="store_true", help="Also print the canonical string (without the secret).")
    p.set_defaults(func=cmd_sign)

    p = sub.add_parser("verify", help="Check a JSON body against a received signature.")
    p.add_argument("input", nargs="?", default="-", help="JSON file (default: stdin).")
    p.add_argument("--signature", required=True)
    p.set_defaults(func=cmd_verify)

    p = sub.add_parser("payin", help="Create a payin order.")
    p.add_argument("--request-id", default=None, help="Defaults to MCH<millis>.")
    p.add_argument("--product-name", default="Test Product")
    p.add_argument("--description", default="This is a test order for demo")
    p.add_argument("--amount", required=True, help='Amount as a string, e.g. "100.00".')
    p.add_argument("--currency", required=True)
    p.add_argument("--success-url", default="https://www.example.com/success")
    p.add_argument("--fail-url", default="https://www.example.com/fail")
    p.add_argument("--notify-url", default=None)
    p.add_argument("--api-version", default="V2", choices=["V1", "V2"])
    p.add_argument("--pay-access-type", type=int, default=1, choices=[1, 2], help="1 = cashier, 2 = openapi.")
    p.add_argument("--expired-time", type=int, default=None, help="Seconds until the order expires.")
    p.add_argument("--way-type", default=None, help="WECHAT, CRYPTO, BANK_TRANSFER, CARD_PAYMENT.")
    p.add_argument("--way-code", default=None)
    p.add_argument("--transaction-network", default=None)
    p.add_argument(
        "--channel-extra",
        default=None,
        help="JSON file with card or token data (openapi mode, needs --pay-access-type 2).",
    )
    p.set_defaults(func=cmd_payin)

    p = sub.add_parser("payin-query", help="Query payin orders.")
    _add_order_ref(p)
    p.add_argument("--hours", type=float, default=24.0, help="Look-back window (max 7 days).")
    p.add_argument("--page", type=int, default=1)
    p.add_argument("--page-size", type=int, default=20)
    p.set_defaults(func=cmd_payin_query)

    p = sub.add_parser("payout", help="Create a batch payout order from a JSON file.")
    p.add_argument("input", nargs="?", default="-", help="JSON file (default: stdin).")
    p.set_defaults(func=cmd_payout)

    p = sub.add_parser("payout-query", help="Query a payout order.")
    _add_order_ref(p)
    p.set_defaults(func=cmd_payout_query)

    p = sub.add_parser("payout-banks", help="List banks supported for payouts.")
    p.add_argument("--country", required=True, help="ISO 3166-1 alpha-2, e.g. PH.")
    p.add_argument("--currency", required=True, help="e.g. PHP.")
    p.add_argument("--way-code", default="TAZAPAY_PAYOUT")
    p.set_defaults(func=cmd_payout_banks)

    p = sub.add_parser("trigger-notify", help="Ask the gateway to resend a payout callback.")
    _add_order_ref(p)
    p.set_defaults(func=cmd_trigger_notify)

    p = sub.add_parser("serve-webhook", help="Run the callback receiver.")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8080)
    p.set_defaults(func=cmd_serve_webhook)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return int(args.func(args))
    except (ValidationError, ParameterTreeError) as e:
        print(f"invalid input: {e}", file=sys.stderr)
        return 2
    except LesspayApiError as e:
        log.error("%s", e)
        return 1
    except requests.RequestException as e:
        log.error("request failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
