#!/usr/bin/env python3
"""
Verify and replay sealed ban audit logs. Validates AEAD and hash-chain integrity.
"""
from __future__ import annotations

import argparse
import json
import sys

from audit_log import verify_log


def main(argv=None) -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--log", required=True, help="path to the ban audit log")
    ap.add_argument("--log-key-hex", required=True, help="hex-encoded 32-byte log key")
    ap.add_argument("--limit", type=int, default=0, help="max records to print (0 = none)")
    args = ap.parse_args(argv)

    ok, records, reason = verify_log(args.log, bytes.fromhex(args.log_key_hex))
    if args.limit:
        for record in records[:args.limit]:
            print(json.dumps(record, indent=2, sort_keys=True))
    if not ok:
        print(f"[FAIL] {reason}")
        return 1
    print(f"[OK] verified {len(records)} records")
    return 0


if __name__ == "__main__":
    sys.exit(main())
