"""
Transaction Signing
===================
Turns unsigned transaction payloads into broadcastable bytes.

KeySigner signs the canonical JSON form of a payload with secp256k1
and wraps it in an envelope for a signing relay. Producing the exact
Stacks wire encoding is left to the relay.
"""

import hashlib
import json
from typing import Protocol

from ecdsa import SigningKey, SECP256k1
from ecdsa.util import sigencode_string_canonize

from .errors import FatalConfigError


class TransactionSigner(Protocol):
    """Anything that can sign a transaction payload."""

    def sign(self, payload: dict) -> bytes:
        ...


def canonical_json(payload: dict) -> bytes:
    """Deterministic JSON encoding used for signing."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()


class KeySigner:
    """Sign payloads with a hex-encoded Stacks private key."""

    def __init__(self, private_key_hex: str):
        if not private_key_hex:
            raise FatalConfigError("Missing private key for signing")

        key_hex = private_key_hex.lower().removeprefix("0x")
        # Stacks keys carry a trailing 01 byte when the public key is compressed
        if len(key_hex) == 66 and key_hex.endswith("01"):
            key_hex = key_hex[:64]
        try:
            self._key = SigningKey.from_string(bytes.fromhex(key_hex), curve=SECP256k1)
        except ValueError as e:
            raise FatalConfigError(f"Invalid private key: {e}") from e

    @property
    def public_key(self) -> str:
        """Compressed public key, hex encoded."""
        return self._key.get_verifying_key().to_string("compressed").hex()

    def sign(self, payload: dict) -> bytes:
        body = canonical_json(payload)
        digest = hashlib.sha256(body).digest()
        signature = self._key.sign_digest_deterministic(
            digest,
            hashfunc=hashlib.sha256,
            sigencode=sigencode_string_canonize,
        )
        return canonical_json({
            "transaction": payload,
            "public_key": self.public_key,
            "signature": signature.hex(),
        })
