"""HS256 JWT signing and verification with issuer/audience checks."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from typing import Any

from tenantgate.core.logging import get_logger

log = get_logger(__name__)

AUDIENCE_SAAS_ADMIN = "saas-admin"
AUDIENCE_TENANT_USER = "tenant-user"
AUDIENCE_REFRESH = "refresh"


class JWTManager:
    """Minimal JWT implementation (HS256) — no external dependency.

    Tokens carry ``iss``, ``aud``, ``iat`` and ``exp``. Verification returns
    the payload, or None for any malformed, forged, expired or
    wrong-audience token.
    """

    def __init__(
        self,
        secret: str,
        issuer: str = "saas-core",
        expiry_seconds: int = 15 * 60,
    ) -> None:
        self._secret: str = secret
        self._issuer: str = issuer
        self._expiry_seconds: int = expiry_seconds

    @property
    def expiry_seconds(self) -> int:
        return self._expiry_seconds

    def create_token(
        self,
        claims: dict[str, Any],
        audience: str,
        expiry_seconds: int | None = None,
    ) -> str:
        """Create a signed JWT for the given audience."""
        now = int(time.time())
        ttl = self._expiry_seconds if expiry_seconds is None else expiry_seconds
        payload: dict[str, Any] = dict(claims)
        payload.update({
            "iss": self._issuer,
            "aud": audience,
            "iat": now,
            "exp": now + ttl,
        })

        header = self._b64url_encode(json.dumps({"alg": "HS256", "typ": "JWT"}).encode())
        body = self._b64url_encode(json.dumps(payload).encode())
        signature = self._sign(f"{header}.{body}")

        return f"{header}.{body}.{signature}"

    def verify_token(self, token: str, audience: str) -> dict[str, Any] | None:
        """Verify a JWT for the expected audience and return the payload, or None."""
        # base64url segments are ASCII; anything else cannot be ours
        if not token.isascii():
            return None
        parts = token.split(".")
        if len(parts) != 3:
            return None

        header_b64, body_b64, sig = parts
        expected_sig = self._sign(f"{header_b64}.{body_b64}")

        if not hmac.compare_digest(sig.encode(), expected_sig.encode()):
            log.debug("jwt_invalid_signature")
            return None

        try:
            header = json.loads(self._b64url_decode(header_b64))
            payload = json.loads(self._b64url_decode(body_b64))
        except (json.JSONDecodeError, ValueError):
            log.debug("jwt_decode_error")
            return None

        if not isinstance(payload, dict) or not isinstance(header, dict):
            return None
        if header.get("alg") != "HS256":
            return None

        exp = payload.get("exp", 0)
        if not isinstance(exp, int) or int(time.time()) >= exp:
            log.debug("jwt_expired", aud=payload.get("aud"))
            return None

        if payload.get("iss") != self._issuer or payload.get("aud") != audience:
            log.debug("jwt_wrong_issuer_or_audience", aud=payload.get("aud"))
            return None

        return payload

    def _sign(self, message: str) -> str:
        sig_bytes = hmac.new(
            self._secret.encode(),
            message.encode(),
            hashlib.sha256,
        ).digest()
        return self._b64url_encode(sig_bytes)

    @staticmethod
    def _b64url_encode(data: bytes) -> str:
        return base64.urlsafe_b64encode(data).rstrip(b"=").decode()

    @staticmethod
    def _b64url_decode(s: str) -> bytes:
        padding = 4 - len(s) % 4
        if padding != 4:
            s += "=" * padding
        return base64.urlsafe_b64decode(s)
