from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv

# Load .env once on import so scripts and the webhook app see the same settings.
load_dotenv()


def _env_str(name: str, default: str = "") -> str:
    """Read a string env var, stripping whitespace."""
    return (os.getenv(name, default) or "").strip()


def _env_int(name: str, default: int = 0) -> int:
    v = _env_str(name, "")
    if not v:
        return int(default)
    try:
        return int(v)
    except ValueError:
        raise SystemExit(f"[lesspay] {name} must be an integer. Got: {v!r}")


def _env_float(name: str, default: float = 0.0, *, lo: Optional[float] = None, hi: Optional[float] = None) -> float:
    """
    Read a float env var.

    `lo`/`hi` clamp the result, mirroring how timeouts and poll intervals are
    bounded elsewhere.
    """
    v = _env_str(name, "")
    if not v:
        out = float(default)
    else:
        try:
            out = float(v)
        except ValueError:
            raise SystemExit(f"[lesspay] {name} must be a number. Got: {v!r}")
    if lo is not None:
        out = max(lo, out)
    if hi is not None:
        out = min(hi, out)
    return out
