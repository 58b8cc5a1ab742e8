"""
Signed bearer tokens for the delivery partner's Drive API.

The partner expects a short-lived HS256 JWT carrying the developer id as
issuer and the key id both in the header and in the claims. The signing
secret is handed out base64url-encoded and must be decoded before it is
used as the HMAC key.
"""
import base64
import binascii
import time
import uuid
from typing import Callable, Optional

from jose import jwt

ALGORITHM = "HS256"
AUDIENCE = "doordash"
TOKEN_VERSION = "DD-JWT-V1"
TOKEN_LIFETIME_SECONDS = 5 * 60
# Regenerate this many seconds before expiry so an in-flight request never carries a stale token
REFRESH_MARGIN_SECONDS = 15


def decode_signing_secret(secret: str) -> bytes:
    """Decodes a base64url secret, tolerating stripped padding."""
    normalized = secret.strip()
    padded = normalized + "=" * (-len(normalized) % 4)
    try:
        return base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError) as e:
        raise ValueError("Drive signing secret is not valid base64url") from e


class PartnerTokenSigner:
    """Builds and caches the partner JWT; at most one signature per token lifetime."""

    def __init__(
        self,
        developer_id: str,
        key_id: str,
        signing_secret: str,
        clock: Callable[[], float] = time.time,
    ):
        if not (developer_id and key_id and signing_secret):
            raise ValueError("developer_id, key_id and signing_secret are all required")
        self.developer_id = developer_id
        self.key_id = key_id
        self._key = decode_signing_secret(signing_secret)
        self._clock = clock
        self._cached_token: Optional[str] = None
        self._expires_at: int = 0

    def get_token(self) -> str:
        now = int(self._clock())
        if self._cached_token and now < self._expires_at - REFRESH_MARGIN_SECONDS:
            return self._cached_token

        expires_at = now + TOKEN_LIFETIME_SECONDS
        claims = {
            "iss": self.developer_id,
            "kid": self.key_id,
            "aud": AUDIENCE,
            "iat": now,
            "exp": expires_at,
            "jti": str(uuid.uuid4()),
        }
        headers = {"kid": self.key_id, "dd-ver": TOKEN_VERSION}

        self._cached_token = jwt.encode(claims, self._key, algorithm=ALGORITHM, headers=headers)
        self._expires_at = expires_at
        return self._cached_token

    def authorization_header(self) -> dict:
        return {"Authorization": f"Bearer {self.get_token()}"}
