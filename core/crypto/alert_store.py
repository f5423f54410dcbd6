from __future__ import annotations
import os, json, time, sqlite3, threading
from typing import Optional, List, Dict, Any, Tuple

from blake3 import blake3
from cryptography.hazmat.primitives import hashes, hmac

from core.hooks.events import AlertEvent
from core.crypto.aead import seal, open_sealed, SUITE_CHACHA20P
from core.crypto.key_manager import LogKeys

DB_FILE = os.path.join(os.path.abspath("."), "pwcatcher_alerts.sqlite3")
ZERO32 = b"\x00" * 32

# AAD covers exactly these header fields, in this order.
STEM_KEYS = ("ver", "suite", "kind", "digest", "prev_tag", "sign_pub")

def utc_ts_ms() -> int:
    return int(time.time() * 1000)

def aad_from_header(header: Dict[str, Any]) -> bytes:
    stem = {k: header[k] for k in STEM_KEYS}
    return json.dumps(stem, separators=(",", ":")).encode("utf-8")

def header_bytes_for_sig(header: Dict[str, Any]) -> bytes:
    hdr = dict(header)
    hdr.pop("sig", None)
    return json.dumps(hdr, separators=(",", ":"), sort_keys=True).encode("utf-8")

def chain_tag(key: bytes, aad: bytes, body: bytes, prev: bytes) -> bytes:
    h = hmac.HMAC(key, hashes.SHA256())
    h.update(aad)
    h.update(body)
    h.update(prev)
    return h.finalize()

def record_digest(key: bytes, raw: bytes) -> str:
    return blake3(raw, key=key).hexdigest()

class AlertLog:
    """
    Append-only alert log with a tamper-evident chain.
    - body: alert record as JSON, ChaCha20-Poly1305 sealed
    - header: keyed BLAKE3 digest of the record, previous chain tag, nonce
    - chain HMAC over (AAD || body || previous tag), continued across restarts
    - header signed with Ed25519
    Records never contain typed characters; only alert kind and page context.
    """
    def __init__(self, keys: LogKeys, db_path: str = DB_FILE):
        self.keys = keys
        self.db_path = db_path
        self._lock = threading.RLock()
        self._init_db()
        self._last_chain_tag = self._load_last_tag()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_db(self):
        conn = self._connect()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS alerts(
                  seq INTEGER PRIMARY KEY AUTOINCREMENT,
                  ts_utc INTEGER NOT NULL,
                  header BLOB NOT NULL,
                  body BLOB NOT NULL
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def _load_last_tag(self) -> bytes:
        conn = self._connect()
        try:
            row = conn.execute("SELECT header FROM alerts ORDER BY seq DESC LIMIT 1").fetchone()
        finally:
            conn.close()
        if row is None:
            return ZERO32
        return bytes.fromhex(json.loads(row[0].decode("utf-8"))["chain_tag"])

    def append(self, ev: AlertEvent) -> int:
        raw = json.dumps(ev.to_record(), separators=(",", ":"), sort_keys=True).encode("utf-8")
        with self._lock:
            header: Dict[str, Any] = {
                "ver": 1,
                "suite": SUITE_CHACHA20P,
                "kind": ev.kind.value,
                "digest": record_digest(self.keys.digest_key, raw),
                "prev_tag": self._last_chain_tag.hex(),
                "sign_pub": self.keys.sign_public_bytes.hex(),
            }
            aad = aad_from_header(header)
            body, nonce = seal(self.keys.record_key, raw, aad)
            header["nonce"] = nonce.hex()

            tag = chain_tag(self.keys.chain_hmac_key, aad, body, self._last_chain_tag)
            header["chain_tag"] = tag.hex()
            header["sig"] = self.keys.sign_private.sign(header_bytes_for_sig(header)).hex()

            seq = self._insert(utc_ts_ms(), json.dumps(header).encode("utf-8"), body)
            self._last_chain_tag = tag
            return seq

    def _insert(self, ts_utc: int, header: bytes, body: bytes) -> int:
        conn = self._connect()
        try:
            cur = conn.execute(
                "INSERT INTO alerts(ts_utc, header, body) VALUES (?,?,?)",
                (ts_utc, header, body)
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("alert insert failed: lastrowid is None")
            return int(rowid)
        finally:
            conn.close()

    def read_records(self, limit: Optional[int] = None) -> List[Tuple[int, Dict[str, Any]]]:
        """Decrypted (seq, record) pairs, oldest first."""
        out: List[Tuple[int, Dict[str, Any]]] = []
        for seq, _ts, header_blob, body in load_rows(self.db_path, limit):
            header = json.loads(header_blob.decode("utf-8"))
            raw = open_sealed(self.keys.record_key, body, aad_from_header(header), bytes.fromhex(header["nonce"]))
            out.append((seq, json.loads(raw.decode("utf-8"))))
        return out

def load_rows(db_path: str, limit: Optional[int] = None) -> List[Tuple[int, int, bytes, bytes]]:
    conn = sqlite3.connect(db_path)
    try:
        q = "SELECT seq, ts_utc, header, body FROM alerts ORDER BY seq ASC"
        if limit:
            q = f"{q} LIMIT {int(limit)}"
        return conn.execute(q).fetchall()
    finally:
        conn.close()
