"""
Request signing for Bitkub private endpoints.

Signature:
  body = canonical JSON of params + {"ts": <unix ms>}
  sig  = hex(HMAC-SHA256(secret, body))

The transmitted body is the canonical JSON of params + ts + sig.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any, Mapping

from .errors import BitkubEncodingError


def now_ms() -> int:
    return int(time.time() * 1000)


def canonical_json(payload: Mapping[str, Any]) -> bytes:
    # IMPORTANT: sorted keys, no spaces; the server recomputes the HMAC over these bytes
    try:
        text = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise BitkubEncodingError(f"Payload is not JSON serializable: {e}", cause=e) from e
    return text.encode("utf-8")


def hmac_sha256_hex(secret: str | bytes, data: bytes) -> str:
    key = secret.encode("utf-8") if isinstance(secret, str) else secret
    return hmac.new(key, data, hashlib.sha256).hexdigest()


def sign_payload(params: Mapping[str, Any], secret: str | bytes, *, ts: int | None = None) -> bytes:
    """
    Return the final request body for ``params``.

    ``params`` is copied, never mutated. ``ts`` defaults to the current time and
    is computed exactly once; retries must call this again for a fresh timestamp.
    """
    payload = dict(params)
    payload.pop("sig", None)
    payload["ts"] = now_ms() if ts is None else ts
    payload["sig"] = hmac_sha256_hex(secret, canonical_json(payload))
    return canonical_json(payload)
