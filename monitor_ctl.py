#!/usr/bin/env python3
# monitor_ctl.py
"""
Send ban/unban/status/traffic commands to the monitor control socket.
Usage:
  python monitor_ctl.py status
  python monitor_ctl.py unban 00:00:00:00:00:02
  python monitor_ctl.py traffic 00:00:00:00:00:02 --index 3
"""
import argparse
import json
import os
import socket
import sys

CONTROL_SOCK = os.environ.get("TRAFFIC_MONITOR_CONTROL_SOCK", "/var/run/traffic-monitor.sock")

COMMANDS = {"ban": "ban_host", "unban": "unban_host", "status": "status", "traffic": "traffic"}


def send_cmd(obj, sock_path=CONTROL_SOCK):
    s = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        s.connect(sock_path)
        s.sendall(json.dumps(obj).encode("utf-8"))
        return s.recv(65536)
    finally:
        s.close()


def build_command(action, host=None, index=None):
    cmd = {"cmd": COMMANDS[action]}
    if host:
        cmd["host"] = host
    if index is not None:
        cmd["index"] = index
    return cmd


def main(argv=None):
    ap = argparse.ArgumentParser()
    ap.add_argument("action", choices=sorted(COMMANDS))
    ap.add_argument("host", nargs="?", help="host MAC address")
    ap.add_argument("--index", type=int, default=None, help="window slot for 'traffic'")
    ap.add_argument("--sock", default=CONTROL_SOCK)
    args = ap.parse_args(argv)

    if args.action != "status" and not args.host:
        ap.error(f"'{args.action}' needs a host")

    try:
        resp = send_cmd(build_command(args.action, args.host, args.index), args.sock)
    except OSError as e:
        print(f"[ctl] control error: {e}", file=sys.stderr)
        return 2
    sys.stdout.write(resp.decode("utf-8"))
    return 0 if b'"ok":false' not in resp else 1


if __name__ == "__main__":
    sys.exit(main())
