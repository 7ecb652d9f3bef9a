import base64
import os
import threading

import pytest

from audit_log import BanAuditLog, verify_log
from audit_replay import main as replay_main
from detection_engine import TickSnapshot


def test_audit_log_records_are_chained(tmp_path):
    key = os.urandom(32)
    log = BanAuditLog(str(tmp_path / "logs" / "ban_audit.log"), key, policy_hash="abc")
    first = log.write("ban", "00:00:00:00:00:02", tick=7)
    second = log.write("unban", "00:00:00:00:00:02", tick=9)
    assert (first.seq, second.seq) == (1, 2)
    assert first.chain_hash != second.chain_hash

    ok, records, reason = verify_log(log.log_path, key)
    assert ok, reason
    assert [r["event"] for r in records] == ["ban", "unban"]
    assert records[0]["policy_hash"] == "abc"
    assert records[1]["tick"] == 9


def test_audit_log_observer_writes_only_new_bans(tmp_path):
    key = os.urandom(32)
    log = BanAuditLog(str(tmp_path / "ban_audit.log"), key)
    log(TickSnapshot(tick=6, banned=["a", "b"], newly_banned=["b"]))
    log(TickSnapshot(tick=7, banned=["a", "b"]))
    ok, records, _ = verify_log(log.log_path, key)
    assert ok
    assert [(r["host"], r["tick"]) for r in records] == [("b", 6)]


def test_tampered_record_fails_verification(tmp_path):
    key = os.urandom(32)
    log = BanAuditLog(str(tmp_path / "ban_audit.log"), key)
    log.write("ban", "h1")
    log.write("ban", "h2")

    lines = open(log.log_path, "rb").read().splitlines()
    sealed = bytearray(base64.b64decode(lines[1]))
    sealed[0] ^= 0xFF
    lines[1] = base64.b64encode(bytes(sealed))
    with open(log.log_path, "wb") as f:
        f.write(b"\n".join(lines) + b"\n")

    ok, records, reason = verify_log(log.log_path, key)
    assert not ok
    assert len(records) == 1
    assert "record 2" in reason


def test_replay_cli_exit_codes(tmp_path, capsys):
    key = os.urandom(32)
    log = BanAuditLog(str(tmp_path / "ban_audit.log"), key)
    log.write("ban", "h1")
    assert replay_main(["--log", log.log_path, "--log-key-hex", key.hex()]) == 0
    assert "[OK] verified 1 records" in capsys.readouterr().out

    wrong_key = os.urandom(32).hex()
    assert replay_main(["--log", log.log_path, "--log-key-hex", wrong_key]) == 1
    assert "[FAIL]" in capsys.readouterr().out


def test_reopened_log_continues_chain(tmp_path):
    key = os.urandom(32)
    path = str(tmp_path / "ban_audit.log")
    BanAuditLog(path, key).write("ban", "h1", tick=6)
    reopened = BanAuditLog(path, key)
    rec = reopened.write("unban", "h1", tick=9)
    assert rec.seq == 2

    ok, records, reason = verify_log(path, key)
    assert ok, reason
    assert [r["seq"] for r in records] == [1, 2]
    assert replay_main(["--log", path, "--log-key-hex", key.hex()]) == 0


def test_reopening_corrupt_log_raises(tmp_path):
    key = os.urandom(32)
    path = str(tmp_path / "ban_audit.log")
    BanAuditLog(path, key).write("ban", "h1")
    with pytest.raises(ValueError):
        BanAuditLog(path, os.urandom(32))


def test_concurrent_writers_keep_chain_intact(tmp_path):
    key = os.urandom(32)
    log = BanAuditLog(str(tmp_path / "ban_audit.log"), key)

    def manual():
        for i in range(200):
            log.write("ban", f"manual-{i}")

    def ticks():
        for i in range(200):
            log(TickSnapshot(tick=i, newly_banned=[f"rule-{i}"]))

    threads = [threading.Thread(target=manual), threading.Thread(target=ticks)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    ok, records, reason = verify_log(log.log_path, key)
    assert ok, reason
    assert [r["seq"] for r in records] == list(range(1, 401))
