from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Literal, Optional, Union

from lesspay.core.params import NULL, ParameterTree, parse_body
from lesspay.crypto import verify
from lesspay.errors import ParameterTreeError

Reason = Literal["", "missing_signature", "bad_body", "bad_timestamp", "signature_mismatch"]


@dataclass(frozen=True)
class CallbackVerdict:
    ok: bool
    reason: Reason = ""
    tree: ParameterTree = NULL


def _timestamp_fresh(timestamp_ms: Optional[Union[str, int]], max_skew_s: int, now_ms: int) -> bool:
    try:
        ts = int(str(timestamp_ms).strip())
    except (TypeError, ValueError):
        return False
    return abs(now_ms - ts) <= max_skew_s * 1000


def verify_callback(
    raw_body: Union[bytes, str],
    signature: Optional[str],
    secret: str,
    *,
    timestamp_ms: Optional[Union[str, int]] = None,
    max_skew_s: int = 0,
    now_ms: Optional[int] = None,
    logger: Optional[logging.Logger] = None,
) -> CallbackVerdict:
    """
    Authenticate an inbound callback body against its X-Auth-Signature.

    The body is re-parsed into a parameter tree and re-signed with the shared
    secret. When `max_skew_s` is positive the X-Auth-Timestamp header must
    also be within that many seconds of `now_ms`.
    """
    if not signature:
        return CallbackVerdict(ok=False, reason="missing_signature")
    try:
        tree = parse_body(raw_body)
    except ParameterTreeError as e:
        if logger is not None:
            logger.warning("callback body rejected: %s", e)
        return CallbackVerdict(ok=False, reason="bad_body")

    if max_skew_s > 0:
        now = int(time.time() * 1000) if now_ms is None else int(now_ms)
        if timestamp_ms is None or not _timestamp_fresh(timestamp_ms, max_skew_s, now):
            return CallbackVerdict(ok=False, reason="bad_timestamp", tree=tree)

    if not verify(tree, secret, signature.strip(), logger=logger):
        return CallbackVerdict(ok=False, reason="signature_mismatch", tree=tree)
    return CallbackVerdict(ok=True, tree=tree)
