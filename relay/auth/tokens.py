"""
Payment tokens proving "payment accepted for transfer X until time T".

Two formats are accepted:

* short token  ``<exp-base36>.<sig>`` where sig is the first 10 bytes of
  HMAC-SHA256(secret, "<id>.<exp-base36>") in unpadded URL-safe base64.
* claims token, an HS256 JWT whose payload carries ``id`` and ``exp``.

Verification never raises; it returns a TokenResult so callers can make a
plain allow/deny decision.
"""
import base64
import hmac
import re
import time
from dataclasses import dataclass
from hashlib import sha256
from typing import Any, Dict, Optional, Union

import jwt

SHORT_SIG_BYTES = 10
CLAIMS_ALGORITHM = "HS256"

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
# 13 base36 digits already exceed any 64-bit epoch
_BASE36_RE = re.compile(r"[0-9a-zA-Z]{1,13}")

Secret = Union[str, bytes]


@dataclass(frozen=True)
class TokenResult:
    ok: bool
    error: Optional[str] = None
    exp: Optional[int] = None
    claims: Optional[Dict[str, Any]] = None


def _key(secret: Secret) -> bytes:
    return secret.encode("utf-8") if isinstance(secret, str) else secret


def _now(now: Optional[int]) -> int:
    return int(time.time()) if now is None else int(now)


def b64u(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def to_base36(n: int) -> str:
    if n < 0:
        raise ValueError("negative values have no base36 form here")
    if n == 0:
        return "0"
    out = []
    while n:
        n, rem = divmod(n, 36)
        out.append(_BASE36_DIGITS[rem])
    return "".join(reversed(out))


def sign_short(transfer_id: str, expiry: int, secret: Secret) -> str:
    exp36 = to_base36(int(expiry))
    mac = hmac.new(_key(secret), f"{transfer_id}.{exp36}".encode("utf-8"), sha256).digest()
    return f"{exp36}.{b64u(mac[:SHORT_SIG_BYTES])}"


def verify_short(transfer_id: str, token: Optional[str], secret: Secret, now: Optional[int] = None) -> TokenResult:
    if not token or not isinstance(token, str):
        return TokenResult(False, "invalid_pp")
    parts = token.split(".")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return TokenResult(False, "invalid_pp")
    exp36 = parts[0]
    if not _BASE36_RE.fullmatch(exp36):
        return TokenResult(False, "invalid_pp")
    exp = int(exp36, 36)
    if exp <= 0:
        return TokenResult(False, "invalid_pp")
    if _now(now) > exp:
        return TokenResult(False, "expired", exp=exp)
    # The signature is re-derived from the expiry the token claims.
    expected = sign_short(transfer_id, exp, secret)
    if not hmac.compare_digest(expected.encode("utf-8"), token.encode("utf-8")):
        return TokenResult(False, "bad_sig")
    return TokenResult(True, exp=exp)


def sign_claims(payload: Dict[str, Any], expiry: int, secret: Secret) -> str:
    claims = {k: v for k, v in payload.items() if v is not None}
    claims["exp"] = int(expiry)
    return jwt.encode(claims, _key(secret), algorithm=CLAIMS_ALGORITHM)


def verify_claims(token: Optional[str], secret: Secret, now: Optional[int] = None) -> TokenResult:
    if not token or not isinstance(token, str):
        return TokenResult(False, "invalid_token")
    if token.count(".") != 2:
        return TokenResult(False, "invalid_token")
    try:
        claims = jwt.decode(
            token,
            _key(secret),
            algorithms=[CLAIMS_ALGORITHM],
            options={"verify_exp": False, "require": ["exp"]},
        )
    except jwt.InvalidSignatureError:
        return TokenResult(False, "bad_sig")
    except jwt.InvalidTokenError:
        return TokenResult(False, "invalid_token")

    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, int):
        return TokenResult(False, "invalid_token")
    if _now(now) > exp:
        return TokenResult(False, "expired", exp=exp)
    return TokenResult(True, exp=exp, claims=claims)
