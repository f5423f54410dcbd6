from __future__ import annotations
import os
from typing import Tuple

from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

SUITE_CHACHA20P = "CHACHA20P"
NONCE_LEN = 12

def seal(key: bytes, plaintext: bytes, aad: bytes) -> Tuple[bytes, bytes]:
    """Encrypt with a fresh random nonce; returns (ciphertext, nonce)."""
    nonce = os.urandom(NONCE_LEN)
    return ChaCha20Poly1305(key).encrypt(nonce, plaintext, aad), nonce

def open_sealed(key: bytes, ciphertext: bytes, aad: bytes, nonce: bytes) -> bytes:
    # raises cryptography.exceptions.InvalidTag on tampering
    return ChaCha20Poly1305(key).decrypt(nonce, ciphertext, aad)
