from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any, Mapping, Optional, Union

from lesspay.core.params import (
    NULL,
    ParameterTree,
    PBool,
    PMapping,
    PNull,
    PNumber,
    PSequence,
    PString,
    dumps_compact,
    from_json,
    render_scalar,
)
from lesspay.errors import SignatureEnvironmentError

SIGNATURE_LENGTH = 64

Signable = Union[ParameterTree, Mapping[str, Any], None]


def _check_hash_available() -> None:
    try:
        hashlib.new("sha256")
    except ValueError as e:
        raise SignatureEnvironmentError("SHA-256 is not available in this Python build") from e


_check_hash_available()


def _as_tree(tree: Signable) -> ParameterTree:
    if tree is None:
        return NULL
    return from_json(tree)


def normalize(tree: Signable) -> ParameterTree:
    """Drop empty-string and null entries from every mapping level; sequences are left alone."""
    node = _as_tree(tree)
    match node:
        case PMapping(entries=entries):
            out = {}
            for k, v in entries.items():
                if isinstance(v, PNull):
                    continue
                if isinstance(v, PString) and v.value == "":
                    continue
                out[k] = normalize(v) if isinstance(v, PMapping) else v
            return PMapping(out)
        case _:
            return node


def _query_string(mapping: PMapping) -> str:
    # Code-point order of str is the same as byte order of the UTF-8 encoding.
    parts = []
    for k in sorted(mapping.entries):
        v = mapping.entries[k]
        match v:
            case PMapping():
                parts.append(f"{k}={{{_query_string(v)}}}")
            case PSequence():
                parts.append(f"{k}={dumps_compact(v)}")
            case PBool() | PNumber() | PString() | PNull():
                parts.append(f"{k}={render_scalar(v)}")
    return "&".join(parts)


def canonical_string(tree: Signable) -> str:
    """The sorted `k=v&...` form of a tree, without the secret."""
    node = normalize(tree)
    if not isinstance(node, PMapping):
        return ""
    return _query_string(node)


def signable_string(tree: Signable, secret: str) -> str:
    # Contains the secret: never log the result.
    qs = canonical_string(tree)
    if not qs:
        return f"key={secret}"
    return f"{qs}&key={secret}"


def sign(tree: Signable, secret: str, *, logger: Optional[logging.Logger] = None) -> str:
    """
    Signature of a parameter tree: uppercase hex SHA-256 of the canonical
    string with `&key=<secret>` appended.
    """
    if logger is not None:
        logger.debug("canonical string: %s", canonical_string(tree))
    digest = hashlib.sha256(signable_string(tree, secret).encode("utf-8")).hexdigest()
    sig = digest.upper()
    if logger is not None:
        logger.debug("signature: %s", sig)
    return sig


def verify(
    tree: Signable,
    secret: str,
    candidate: Any,
    *,
    logger: Optional[logging.Logger] = None,
) -> bool:
    if not isinstance(candidate, str) or len(candidate) != SIGNATURE_LENGTH:
        if logger is not None:
            logger.debug("rejecting malformed signature candidate")
        return False
    if not candidate.isascii():
        if logger is not None:
            logger.debug("rejecting non-ASCII signature candidate")
        return False
    expected = sign(tree, secret, logger=logger)
    ok = hmac.compare_digest(expected.encode("ascii"), candidate.encode("ascii"))
    if not ok and logger is not None:
        logger.info("signature mismatch")
    return ok
