#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Bandwidth DoS monitor
- Periodic tick: pull hosts and port counters from the controller, feed the detection engine
- Sliding-window bandwidth rule bans hosts into an in-memory blacklist
- UNIX domain socket control API to accept JSON commands (ban/unban/status/traffic)
- Optional sealed audit log of every ban/unban
- Structured JSON event logs
"""
import argparse
import json
import logging
import os
import socket
import threading
import time
from typing import Optional

from audit_log import BanAuditLog
from console_report import ConsoleReporter
from detection_engine import DetectionEngine, TickSnapshot
from host_collector import ControllerError, NetworkController, collect_readings
from profiles_loader import Profile, load_profiles
from topology import TopologyFileController

CONTROL_SOCK = os.environ.get("TRAFFIC_MONITOR_CONTROL_SOCK", "/var/run/traffic-monitor.sock")  # override for tests
AUDIT_KEY_HEX = os.environ.get("TRAFFIC_MONITOR_AUDIT_KEY", "")
AUDIT_LOG_PATH = "logs/ban_audit.log"


class MonitorService:
    def __init__(
        self,
        engine: DetectionEngine,
        controller: NetworkController,
        profile: Profile,
        audit: Optional[BanAuditLog] = None,
    ) -> None:
        self.engine = engine
        self.controller = controller
        self.profile = profile
        self.audit = audit
        if audit is not None:
            engine.add_observer(audit)

    def run_once(self) -> Optional[TickSnapshot]:
        try:
            readings = collect_readings(self.controller)
        except ControllerError as e:
            logging.error(json.dumps({"event": "tick_skipped", "tick": self.engine.current_tick, "reason": str(e)}))
            return None
        return self.engine.tick(readings)

    def run_forever(self, stop: threading.Event) -> None:
        interval = self.profile.interval_s
        while not stop.is_set():
            started = time.monotonic()
            try:
                self.run_once()
            except Exception:
                logging.exception("tick %d failed", self.engine.current_tick)
            stop.wait(max(0.0, interval - (time.monotonic() - started)))

    # --- Control plane --------------------------------------------------
    def manual_ban(self, host: str) -> bool:
        changed, tick = self.engine.ban_at(host)
        if changed:
            logging.warning(json.dumps({"event": "ban", "host": host, "source": "control"}))
            if self.audit is not None:
                self.audit.write("ban", host, tick)
        return changed

    def manual_unban(self, host: str) -> bool:
        changed, tick = self.engine.unban_at(host)
        if changed:
            logging.info(json.dumps({"event": "unban", "host": host, "source": "control"}))
            if self.audit is not None:
                self.audit.write("unban", host, tick)
        return changed

    def status(self) -> dict:
        limits = self.engine.limits
        return {
            "tick": self.engine.current_tick,
            "banned": [str(h) for h in self.engine.banned()],
            "hosts": sorted(str(h) for h in self.engine.ledger.known_hosts()),
            "profile": self.profile.profile_id,
            "policy_hash": self.profile.policy_hash,
            "bandwidth_kb": limits.bandwidth_kb,
            "num_cycles": limits.num_cycles,
            "ban_time_s": limits.ban_time_s,
        }

    def handle_control_command(self, data: bytes) -> bytes:
        try:
            cmd = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            return b'{"ok":false,"err":"bad_json"}\n'
        if not isinstance(cmd, dict):
            return b'{"ok":false,"err":"bad_json"}\n'

        kind = cmd.get("cmd")
        if kind == "status":
            return (json.dumps(self.status()) + "\n").encode("utf-8")
        if kind not in ("ban_host", "unban_host", "traffic"):
            return b'{"ok":false,"err":"unknown_cmd"}\n'

        host = cmd.get("host")
        if not host:
            return b'{"ok":false,"err":"missing_host"}\n'
        host = str(host).lower()
        if kind == "ban_host":
            changed = self.manual_ban(host)
            return (json.dumps({"ok": True, "changed": changed}) + "\n").encode("utf-8")
        if kind == "unban_host":
            changed = self.manual_unban(host)
            return (json.dumps({"ok": True, "changed": changed}) + "\n").encode("utf-8")

        raw_index = cmd.get("index")
        try:
            if raw_index is None:
                index = (self.engine.current_tick - 1) % self.engine.limits.num_cycles
            else:
                index = int(raw_index)
        except (TypeError, ValueError):
            return b'{"ok":false,"err":"bad_index"}\n'
        kb = self.engine.get_traffic(host, index)
        return (json.dumps({"ok": True, "host": host, "index": index, "kb": kb}) + "\n").encode("utf-8")

    def serve_connection(self, conn: socket.socket) -> None:
        with conn:
            data = conn.recv(8192)
            conn.sendall(self.handle_control_command(data))

    def control_server(self, sock_path: Optional[str] = None, ready: Optional[threading.Event] = None) -> None:
        sock_path = sock_path or CONTROL_SOCK
        try:
            if os.path.exists(sock_path):
                os.remove(sock_path)
            srv = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            srv.bind(sock_path)
            os.chmod(sock_path, 0o660)
            srv.listen(5)
        except OSError as e:
            logging.error("Control server error: %s", e)
            return
        logging.info("Control socket listening at %s", sock_path)
        if ready is not None:
            ready.set()
        with srv:
            while True:
                try:
                    conn, _ = srv.accept()
                except OSError as e:
                    logging.error("Control server error: %s", e)
                    return
                try:
                    self.serve_connection(conn)
                except OSError as e:
                    logging.warning("Control client dropped: %s", e)
                except Exception:
                    logging.exception("Control command failed")


def build_audit_log(profile: Profile) -> Optional[BanAuditLog]:
    if not AUDIT_KEY_HEX:
        return None
    try:
        return BanAuditLog(AUDIT_LOG_PATH, bytes.fromhex(AUDIT_KEY_HEX), profile.policy_hash)
    except ValueError as e:
        logging.error("Audit log disabled: %s", e)
        return None


def main(argv=None):
    ap = argparse.ArgumentParser(description="Bandwidth DoS monitor")
    ap.add_argument("--profiles", default="profiles", help="directory of YAML monitor profiles")
    ap.add_argument("--profile", default="default", help="profile_id to run with")
    ap.add_argument("--topology", default="topology.yaml", help="YAML snapshot of hosts and port counters")
    ap.add_argument("--interval", type=float, default=None, help="seconds between ticks (overrides profile)")
    ap.add_argument("--control-sock", default=None, help="UNIX control socket path")
    ap.add_argument("--once", action="store_true", help="run a single tick and exit")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    profiles = load_profiles(args.profiles)
    if args.profile not in profiles:
        ap.error(f"unknown profile {args.profile!r}; available: {', '.join(sorted(profiles))}")
    profile = profiles[args.profile]
    if args.interval is not None:
        if args.interval <= 0:
            ap.error("--interval must be positive")
        profile = Profile(profile.profile_id, profile.raw, profile.policy_hash, profile.limits, args.interval)

    engine = DetectionEngine(profile.limits)
    engine.add_observer(ConsoleReporter())
    service = MonitorService(engine, TopologyFileController(args.topology), profile, build_audit_log(profile))
    logging.info(
        "Monitoring with profile %s: %d KB/cycle over %d cycles",
        profile.profile_id, profile.limits.bandwidth_kb, profile.limits.num_cycles,
    )

    if args.once:
        service.run_once()
        return

    t = threading.Thread(target=service.control_server, args=(args.control_sock,), daemon=True)
    t.start()

    stop = threading.Event()
    try:
        service.run_forever(stop)
    except KeyboardInterrupt:
        logging.info("Shutting down")
        stop.set()


if __name__ == "__main__":
    main()
