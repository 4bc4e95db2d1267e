from __future__ import annotations

from dataclasses import dataclass, field

from lesspay.utils.env import _env_float, _env_int, _env_str

DEFAULT_BASE_URL = "https://lesspay2-pay-uat.doopayment.com"


@dataclass(frozen=True)
class ApiConfig:
    base_url: str
    app_id: str
    # Merchant AppSecret; kept out of repr so configs can be logged.
    app_secret: str = field(repr=False)
    timeout_s: float = 30.0


@dataclass(frozen=True)
class WebhookConfig:
    app_secret: str = field(repr=False)
    # 0 disables the X-Auth-Timestamp freshness check.
    max_skew_s: int = 0


def _die(msg: str) -> None:
    raise SystemExit(f"[lesspay] {msg}")


def load_api_config() -> ApiConfig:
    """
    Load merchant API settings from env/.env with strict validation.

    LESSPAY_BASE_URL falls back to the UAT gateway; app id and secret are
    always required.
    """
    base_url = _env_str("LESSPAY_BASE_URL", DEFAULT_BASE_URL).rstrip("/")
    if not base_url.startswith("http"):
        _die(f"LESSPAY_BASE_URL must be http(s). Got: {base_url!r}")

    app_id = _env_str("LESSPAY_APP_ID", "")
    if not app_id:
        _die("Missing required env var: LESSPAY_APP_ID.")
    app_secret = _env_str("LESSPAY_APP_SECRET", "")
    if not app_secret:
        _die("Missing required env var: LESSPAY_APP_SECRET.")

    return ApiConfig(
        base_url=base_url,
        app_id=app_id,
        app_secret=app_secret,
        timeout_s=_env_float("LESSPAY_TIMEOUT_S", 30.0, lo=1.0, hi=300.0),
    )


def load_webhook_config() -> WebhookConfig:
    app_secret = _env_str("LESSPAY_APP_SECRET", "")
    if not app_secret:
        _die("Missing required env var: LESSPAY_APP_SECRET (needed to verify callbacks).")
    max_skew_s = max(0, _env_int("LESSPAY_WEBHOOK_MAX_SKEW_S", 0))
    return WebhookConfig(app_secret=app_secret, max_skew_s=int(max_skew_s))
