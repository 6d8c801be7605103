"""Test continuation token encryption."""
import time

import pytest
from cryptography.fernet import Fernet

from hub.crypto import ActionCrypto, derive_key
from hub.errors import AuthorizationError, InternalError


@pytest.mark.parametrize("payload", [
    {"stateurl": "https://caller.test/state"},
    {"tokens": {"access_token": "a", "expiry": 12}, "redirect": "https://hub.test/r"},
    ["list", 1, None, True],
    "plain string",
    {},
])
def test_json_round_trip(crypto, payload):
    token = crypto.encrypt_json(payload)
    assert crypto.decrypt_json(token) == payload


def test_ciphertext_is_opaque(crypto):
    token = crypto.encrypt("secret-stateurl")
    assert "secret-stateurl" not in token


def test_foreign_key_fails(crypto):
    token = ActionCrypto("some-other-key").encrypt("hello")
    with pytest.raises(AuthorizationError):
        crypto.decrypt(token)


def test_bit_flip_fails(crypto):
    token = crypto.encrypt("hello world")
    raw = bytearray(token.encode("ascii"))
    middle = len(raw) // 2
    raw[middle] = ord("A") if raw[middle] != ord("A") else ord("B")
    with pytest.raises(AuthorizationError):
        crypto.decrypt(raw.decode("ascii"))


def test_truncated_and_garbage_fail(crypto):
    token = crypto.encrypt("hello")
    for bad in (token[:-4], "not-a-token", "{}", "ünïcode"):
        with pytest.raises(AuthorizationError):
            crypto.decrypt(bad)


def test_empty_token_fails(crypto):
    with pytest.raises(AuthorizationError):
        crypto.decrypt("")


def test_expired_token_fails(crypto):
    token = crypto._fernet.encrypt_at_time(b"old", int(time.time()) - 120).decode()
    assert crypto.decrypt(token) == "old"
    with pytest.raises(AuthorizationError):
        crypto.decrypt(token, ttl=60)


def test_non_json_payload_fails_json_decrypt(crypto):
    token = crypto.encrypt("not json")
    with pytest.raises(AuthorizationError):
        crypto.decrypt_json(token)


def test_missing_key_is_internal_error():
    with pytest.raises(InternalError):
        ActionCrypto(None)
    with pytest.raises(InternalError):
        ActionCrypto("")


def test_derive_key_accepts_fernet_key():
    key = Fernet.generate_key()
    assert derive_key(key.decode()) == key


def test_derive_key_stretches_passphrase():
    key = derive_key("passphrase")
    Fernet(key)  # valid key
    assert derive_key("passphrase") == key
    assert derive_key("other") != key
