from __future__ import annotations
import json, os
from dataclasses import dataclass
from typing import Dict, Any, Optional, Tuple, List

from cryptography.exceptions import InvalidSignature, InvalidTag
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from core.crypto.aead import open_sealed
from core.crypto.alert_store import (
    ZERO32, aad_from_header, chain_tag, header_bytes_for_sig, load_rows, record_digest,
)
from core.crypto.key_manager import LogKeys, MASTER_KEY_NAME, SIGN_KEY_NAME

@dataclass
class VerifyStats:
    total: int = 0
    sig_ok: int = 0
    chain_ok: int = 0
    decrypt_ok: int = 0

def load_keys(secrets_dir: str, errors: List[str]) -> Optional[LogKeys]:
    key_path = os.path.join(secrets_dir, MASTER_KEY_NAME)
    sign_path = os.path.join(secrets_dir, SIGN_KEY_NAME)
    if not (os.path.exists(key_path) and os.path.exists(sign_path)):
        errors.append(f"keys not found in {secrets_dir}; chain/decrypt checks will be skipped.")
        return None
    with open(key_path, "rb") as f:
        master = f.read()
    with open(sign_path, "rb") as f:
        sign_priv = Ed25519PrivateKey.from_private_bytes(f.read())
    return LogKeys.from_master(master, sign_priv)

def verify_log(
    db_path: str,
    secrets_dir: Optional[str],
    limit: Optional[int] = None,
    no_decrypt: bool = False,
    verbose: bool = False,
) -> Tuple[VerifyStats, List[str]]:
    """
    Returns (stats, errors). With secrets_dir the chain HMAC, decryption and
    record digests are checked too; without it only header signatures.
    """
    stats = VerifyStats()
    errors: List[str] = []

    rows = load_rows(db_path, limit)
    if not rows:
        return stats, ["No rows found in alerts table."]

    keys = load_keys(secrets_dir, errors) if secrets_dir else None
    prev_tag = ZERO32

    for (seq, _ts, header_blob, body) in rows:
        stats.total += 1
        try:
            header: Dict[str, Any] = json.loads(header_blob.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            errors.append(f"[seq={seq}] header JSON decode failed: {e}")
            continue

        # 1) header signature, public key only
        try:
            pub = Ed25519PublicKey.from_public_bytes(bytes.fromhex(header["sign_pub"]))
            pub.verify(bytes.fromhex(header["sig"]), header_bytes_for_sig(header))
            stats.sig_ok += 1
            if verbose:
                print(f"[seq={seq}] signature OK")
        except (KeyError, ValueError, InvalidSignature) as e:
            errors.append(f"[seq={seq}] signature verification FAILED: {str(e) or type(e).__name__}")

        if keys is None:
            continue

        # 2) chain HMAC over (AAD || body || previous tag)
        try:
            aad = aad_from_header(header)
            if header["prev_tag"] != prev_tag.hex():
                errors.append(f"[seq={seq}] chain break: prev_tag does not match previous record")
            expected = chain_tag(keys.chain_hmac_key, aad, body, prev_tag)
            if expected.hex() == header["chain_tag"]:
                stats.chain_ok += 1
            else:
                errors.append(f"[seq={seq}] chain HMAC mismatch")
            prev_tag = bytes.fromhex(header["chain_tag"])
        except (KeyError, ValueError) as e:
            errors.append(f"[seq={seq}] chain check failed: {e}")
            continue

        # 3) decrypt and compare the keyed digest
        if no_decrypt:
            continue
        try:
            raw = open_sealed(keys.record_key, body, aad, bytes.fromhex(header["nonce"]))
            if record_digest(keys.digest_key, raw) == header["digest"]:
                stats.decrypt_ok += 1
            else:
                errors.append(f"[seq={seq}] record digest mismatch")
        except (KeyError, ValueError, InvalidTag) as e:
            errors.append(f"[seq={seq}] decrypt FAILED: {str(e) or type(e).__name__}")

    return stats, errors
