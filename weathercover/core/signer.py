"""
Caller Identity Signing

Ed25519 signing for per-call caller identity.

A caller's identity IS its base64 public key. A request proves the identity
by carrying a signature over "{METHOD} {PATH}:{sha256(body)}".
"""

import base64
import binascii
from typing import Tuple

from nacl.exceptions import BadSignatureError, CryptoError
from nacl.signing import SigningKey, VerifyKey

from .hasher import Hasher


class Signer:
    """Ed25519 key generation, signing and verification."""

    @staticmethod
    def generate_keypair() -> Tuple[str, str]:
        """
        Generate a new Ed25519 keypair.

        Returns:
            Tuple of (private_key_b64, public_key_b64)
        """
        signing_key = SigningKey.generate()
        private_b64 = base64.b64encode(bytes(signing_key)).decode("utf-8")
        public_b64 = base64.b64encode(bytes(signing_key.verify_key)).decode("utf-8")
        return private_b64, public_b64

    @staticmethod
    def public_key_for(private_key_b64: str) -> str:
        """Derive the base64 public key (the caller identity) from a private key."""
        signing_key = SigningKey(base64.b64decode(private_key_b64))
        return base64.b64encode(bytes(signing_key.verify_key)).decode("utf-8")

    @staticmethod
    def sign(message: str, private_key_b64: str) -> str:
        """Sign a message, returning a base64 raw signature."""
        signing_key = SigningKey(base64.b64decode(private_key_b64))
        signed = signing_key.sign(message.encode("utf-8"))
        return base64.b64encode(signed.signature).decode("utf-8")

    @staticmethod
    def verify(message: str, signature_b64: str, public_key_b64: str) -> bool:
        """Verify an Ed25519 signature. Malformed keys or signatures verify False."""
        try:
            verify_key = VerifyKey(base64.b64decode(public_key_b64, validate=True))
            signature_bytes = base64.b64decode(signature_b64, validate=True)
            verify_key.verify(message.encode("utf-8"), signature_bytes)
            return True
        except (BadSignatureError, CryptoError, binascii.Error, ValueError, TypeError):
            return False

    @staticmethod
    def request_message(method: str, path: str, body: bytes) -> str:
        """The exact string a caller signs for one HTTP request."""
        return f"{method.upper()} {path}:{Hasher.hash_bytes(body)}"

    @classmethod
    def sign_request(cls, method: str, path: str, body: bytes, private_key_b64: str) -> str:
        return cls.sign(cls.request_message(method, path, body), private_key_b64)

    @classmethod
    def verify_request(
        cls,
        method: str,
        path: str,
        body: bytes,
        signature_b64: str,
        public_key_b64: str,
    ) -> bool:
        return cls.verify(cls.request_message(method, path, body), signature_b64, public_key_b64)
