from __future__ import annotations
import os
from dataclasses import dataclass

from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

SECRETS_DIR = os.path.join(os.path.abspath("."), "secrets")
MASTER_KEY_NAME = "master.key"
SIGN_KEY_NAME = "signing.key"

KDF_SALT = b"pwcatcher-alert-log-v1"

def _chmod_quiet(path: str, mode: int) -> None:
    try:
        os.chmod(path, mode)
    except OSError:
        pass  # not supported on every filesystem

def derive_key(master: bytes, info: bytes, length: int = 32) -> bytes:
    hkdf = HKDF(algorithm=hashes.SHA256(), length=length, salt=KDF_SALT, info=info)
    return hkdf.derive(master)

@dataclass
class LogKeys:
    record_key: bytes       # ChaCha20-Poly1305 key for alert bodies
    digest_key: bytes       # keyed BLAKE3 digest of the plaintext record
    chain_hmac_key: bytes   # HMAC chain across records
    sign_private: ed25519.Ed25519PrivateKey
    sign_public_bytes: bytes

    @classmethod
    def from_master(cls, master: bytes, sign_private: ed25519.Ed25519PrivateKey) -> "LogKeys":
        return cls(
            record_key=derive_key(master, b"record-key"),
            digest_key=derive_key(master, b"record-digest"),
            chain_hmac_key=derive_key(master, b"hmac-chain"),
            sign_private=sign_private,
            sign_public_bytes=sign_private.public_key().public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw,
            ),
        )

class MasterKeyManager:
    """
    Sealed-file key storage for the alert log:
      - 32-byte master key in <secrets>/master.key (0600)
      - Ed25519 signing key in <secrets>/signing.key (0600)
    """
    def __init__(self, secrets_dir: str = SECRETS_DIR):
        self.secrets_dir = secrets_dir
        os.makedirs(self.secrets_dir, exist_ok=True)
        _chmod_quiet(self.secrets_dir, 0o700)

    @property
    def master_path(self) -> str:
        return os.path.join(self.secrets_dir, MASTER_KEY_NAME)

    @property
    def signing_path(self) -> str:
        return os.path.join(self.secrets_dir, SIGN_KEY_NAME)

    def load_or_create_master(self) -> bytes:
        if os.path.exists(self.master_path):
            with open(self.master_path, "rb") as f:
                return f.read()
        key = os.urandom(32)
        with open(self.master_path, "wb") as f:
            f.write(key)
        _chmod_quiet(self.master_path, 0o600)
        return key

    def load_or_create_signing_key(self) -> ed25519.Ed25519PrivateKey:
        if os.path.exists(self.signing_path):
            with open(self.signing_path, "rb") as f:
                return ed25519.Ed25519PrivateKey.from_private_bytes(f.read())
        priv = ed25519.Ed25519PrivateKey.generate()
        with open(self.signing_path, "wb") as f:
            f.write(priv.private_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PrivateFormat.Raw,
                encryption_algorithm=serialization.NoEncryption()
            ))
        _chmod_quiet(self.signing_path, 0o600)
        return priv

    def log_keys(self) -> LogKeys:
        return LogKeys.from_master(self.load_or_create_master(), self.load_or_create_signing_key())
