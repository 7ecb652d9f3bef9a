# audit_log.py
"""
Sealed, hash-chained audit trail of blacklist transitions.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Hashable, List, Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from detection_engine import TickSnapshot

GENESIS = b"\x00" * 32
AAD = b"banlog"


@dataclass
class AuditRecord:
    ts: float
    seq: int
    event: str
    host: str
    tick: Optional[int]
    policy_hash: str
    chain_hash: str


def _nonce(log_key: bytes, chain: bytes, seq: int) -> bytes:
    # deterministic nonce derived from log key + previous chain hash + seq
    return hmac.new(log_key, chain + seq.to_bytes(8, "big"), hashlib.sha256).digest()[:12]


def _canonical_json(obj: Dict[str, Any]) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":")).encode("utf-8")


def verify_log(path: str, log_key: bytes) -> Tuple[bool, List[Dict[str, Any]], str]:
    """Return (ok, records verified so far, failure reason)."""
    aead = ChaCha20Poly1305(log_key)
    chain = GENESIS
    records: List[Dict[str, Any]] = []

    with open(path, "rb") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            seq = len(records) + 1
            try:
                record_bytes = aead.decrypt(_nonce(log_key, chain, seq), base64.b64decode(line), AAD)
            except (InvalidTag, ValueError):
                return False, records, f"record {seq}: AEAD decrypt failed"

            record = json.loads(record_bytes.decode("utf-8"))
            if record.get("chain_prev") != chain.hex():
                return False, records, f"record {seq}: chain_prev mismatch"

            record_for_hash = dict(record)
            record_for_hash.pop("chain_hash", None)
            chain = hashlib.sha256(chain + _canonical_json(record_for_hash)).digest()
            if record.get("chain_hash") != chain.hex():
                return False, records, f"record {seq}: chain_hash mismatch"
            records.append(record)

    return True, records, ""


class BanAuditLog:
    def __init__(self, log_path: str, log_key: bytes, policy_hash: str = "") -> None:
        if len(log_key) != 32:
            raise ValueError("audit log key must be 32 bytes")
        self.log_path = log_path
        self.policy_hash = policy_hash
        self._log_key = log_key
        self._aead = ChaCha20Poly1305(log_key)
        self._lock = threading.Lock()
        self._seq = 0
        self._chain = GENESIS
        parent = os.path.dirname(log_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        if os.path.exists(log_path):
            self._resume()

    def _resume(self) -> None:
        # continue the chain of an existing log instead of restarting at genesis
        ok, records, reason = verify_log(self.log_path, self._log_key)
        if not ok:
            raise ValueError(f"existing audit log {self.log_path} does not verify: {reason}")
        if records:
            self._seq = records[-1]["seq"]
            self._chain = bytes.fromhex(records[-1]["chain_hash"])

    def write(self, event: str, host: Hashable, tick: Optional[int] = None) -> AuditRecord:
        with self._lock:
            self._seq += 1
            chain_prev = self._chain
            record = {
                "ts": time.time(),
                "seq": self._seq,
                "event": event,
                "host": str(host),
                "tick": tick,
                "policy_hash": self.policy_hash,
                "chain_prev": chain_prev.hex(),
            }
            self._chain = hashlib.sha256(chain_prev + _canonical_json(record)).digest()
            record["chain_hash"] = self._chain.hex()

            sealed = self._aead.encrypt(_nonce(self._log_key, chain_prev, self._seq), json.dumps(record).encode("utf-8"), AAD)
            with open(self.log_path, "ab") as f:
                f.write(base64.b64encode(sealed) + b"\n")

            return AuditRecord(
                ts=record["ts"],
                seq=self._seq,
                event=event,
                host=record["host"],
                tick=tick,
                policy_hash=self.policy_hash,
                chain_hash=record["chain_hash"],
            )

    def __call__(self, snapshot: TickSnapshot) -> None:
        for host in snapshot.newly_banned:
            self.write("ban", host, snapshot.tick)
