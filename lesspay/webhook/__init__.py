"""Merchant-side receiver for gateway callbacks.

The gateway POSTs payout/payin results to the merchant's notify_url with
X-Auth-Timestamp and X-Auth-Signature headers. Authenticity is established
only by re-signing the body with the shared AppSecret; the receiver answers
"SUCCESS" once a callback is accepted.
"""
