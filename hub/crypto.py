"""
Action Hub Continuation Token Codec.

OAuth flows leave this process twice (to the provider, then back to the
caller), and there is no session store to remember anything in between.
Whatever must survive the round trip travels as an encrypted, authenticated
Fernet token:
- outbound: {stateurl} in the provider's `state` query param
- inbound: {tokens, redirect} in the form's `state`

Decryption fails closed: a tampered, foreign-key or expired token raises
AuthorizationError, never returns an empty state.
"""
from __future__ import annotations
from typing import Any, Optional
import base64
import hashlib
import json
import logging

from cryptography.fernet import Fernet, InvalidToken

from hub.errors import AuthorizationError, InternalError

log = logging.getLogger(__name__)


def derive_key(cipher_master: str) -> bytes:
    """Turn an arbitrary secret into a Fernet key.

    A value that already is a Fernet key (32 url-safe base64 bytes) is used
    as-is; anything else is stretched through SHA-256.
    """
    raw = cipher_master.encode("utf-8")
    try:
        if len(base64.urlsafe_b64decode(raw)) == 32:
            return raw
    except ValueError:
        pass
    return base64.urlsafe_b64encode(hashlib.sha256(raw).digest())


class ActionCrypto:
    """Encrypts and decrypts continuation tokens under one master key."""

    def __init__(self, cipher_master: Optional[str]):
        if not cipher_master:
            raise InternalError("CIPHER_MASTER is not configured")
        self._fernet = Fernet(derive_key(cipher_master))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str, ttl: Optional[int] = None) -> str:
        """Decrypt a token; `ttl` (seconds) rejects tokens older than that."""
        if not token:
            raise AuthorizationError("Missing continuation token")
        try:
            data = self._fernet.decrypt(token.encode("ascii"), ttl=ttl)
        except (InvalidToken, UnicodeEncodeError) as exc:
            log.warning("rejected continuation token: %s", type(exc).__name__)
            raise AuthorizationError("Continuation token is invalid or expired") from exc
        return data.decode("utf-8")

    def encrypt_json(self, payload: Any) -> str:
        return self.encrypt(json.dumps(payload, sort_keys=True))

    def decrypt_json(self, token: str, ttl: Optional[int] = None) -> Any:
        plaintext = self.decrypt(token, ttl=ttl)
        try:
            return json.loads(plaintext)
        except json.JSONDecodeError as exc:
            raise AuthorizationError("Continuation token does not hold JSON") from exc
