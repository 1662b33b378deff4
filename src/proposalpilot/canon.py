"""
Canonical JSON for Fingerprints

A split structure hashes to the same digest no matter how its source rows
were written. Canonical text here means:

- object keys sorted, no whitespace
- list order kept (split sequence and tier level are significant)
- decimals as normalized fixed-point strings ("50.00" -> "50")
- dates as ISO 8601, sets as sorted lists
- UTF-8, non-ASCII characters kept as-is

Digests are SHA-256 hex over the UTF-8 canonical text.
"""
from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal
from typing import Any


def decimal_token(value: Decimal) -> str:
    """
    Render a Decimal as a normalized fixed-point string.

        >>> decimal_token(Decimal("50.00"))
        '50'
        >>> decimal_token(Decimal("33.3300"))
        '33.33'
        >>> decimal_token(Decimal("1E+2"))
        '100'
    """
    text = format(value.normalize(), "f")
    return "0" if text in ("", "-0") else text


def _encode_extra(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return decimal_token(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    raise TypeError(f"Cannot canonicalize {type(obj).__name__}")


def canonical_json(obj: Any) -> str:
    """
    Canonical text of a JSON-like structure.

        >>> canonical_json({"tiers": [], "pct": Decimal("60.0")})
        '{"pct":"60","tiers":[]}'
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_encode_extra,
    )


def text_hash(text: str) -> str:
    """SHA-256 hex digest of already canonical text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def content_hash(obj: Any) -> str:
    """SHA-256 hex digest of `obj`'s canonical text."""
    return text_hash(canonical_json(obj))


def content_hash_short(obj: Any, length: int = 12) -> str:
    """Digest prefix for log lines and hierarchy names."""
    return content_hash(obj)[:length]
